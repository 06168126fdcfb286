"""Market data analysis helpers."""
