"""Data models shared across services."""
