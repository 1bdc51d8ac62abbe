"""Collaborators: storage, GitHub and CI context."""
