"""Services wrapping the external tools and APIs an App reconcile uses."""
