"""Domain models, exceptions and configuration."""
