"""Core analysis algorithms."""
