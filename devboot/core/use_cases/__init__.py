"""Use cases — one function per user-facing action."""
