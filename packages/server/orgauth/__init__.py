"""Org membership service: users, organizations and role-based access."""

__version__ = "0.1.0"
