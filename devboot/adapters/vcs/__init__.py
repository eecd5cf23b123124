"""Version-control providers."""
