"""Remote list API client."""
