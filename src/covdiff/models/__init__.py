"""Data models for covdiff."""
