"""Time and database helpers."""
