"""Strategy snapshot persistence."""
