"""Fetch backends."""
