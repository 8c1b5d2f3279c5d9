"""Command execution."""
