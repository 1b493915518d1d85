"""Data models for byte windows, located metadata and extracted records."""
