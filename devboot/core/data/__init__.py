"""Static rule tables and the bundled component registry."""
