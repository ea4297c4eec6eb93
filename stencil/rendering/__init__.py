"""Template registration, staged rendering and promotion."""
