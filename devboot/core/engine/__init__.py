"""Operation runner and bounded execution."""
