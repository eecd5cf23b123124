"""Registry file loading and settings."""
