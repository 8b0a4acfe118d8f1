"""Package-manager CLI wrappers."""
