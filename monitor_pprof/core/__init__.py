"""Core system components (config, DI, errors)."""
