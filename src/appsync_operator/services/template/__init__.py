"""Template backends."""
