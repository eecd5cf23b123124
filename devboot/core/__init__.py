"""Core domain: models, config, engine, persistence, services."""
