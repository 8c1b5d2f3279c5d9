"""Deploy backends."""
