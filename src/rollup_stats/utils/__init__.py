"""Chain access helpers."""
