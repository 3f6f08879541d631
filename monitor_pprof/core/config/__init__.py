"""YAML configuration and typed settings."""
