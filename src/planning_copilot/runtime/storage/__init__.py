"""File-backed persistence for runtime state."""
