"""Source-of-truth database access."""
