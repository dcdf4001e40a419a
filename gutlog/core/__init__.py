"""Core components for gutlog."""
