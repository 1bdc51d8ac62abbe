"""Adapters translating external report formats into covdiff models."""
