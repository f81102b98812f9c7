"""Chain-state readers."""
