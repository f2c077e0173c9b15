"""Storage backends and entity schemas."""
