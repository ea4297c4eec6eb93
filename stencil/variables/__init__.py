"""Variable resolution, coercion and collection."""
