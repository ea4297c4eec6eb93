"""Core domain models, errors and settings."""
