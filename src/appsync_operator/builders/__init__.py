"""Builders turning App specs into backends."""
