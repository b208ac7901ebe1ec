"""Shared helpers: value types, locks, time and address utilities."""
