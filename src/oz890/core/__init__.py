"""High-level device operations."""
