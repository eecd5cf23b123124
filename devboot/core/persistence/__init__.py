"""On-disk state: failure log and run history."""
