"""Storage backends and object storage."""
