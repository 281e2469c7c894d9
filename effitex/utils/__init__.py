"""Small standalone helpers."""
