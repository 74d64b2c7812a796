"""Core types and the in-memory token registry."""
