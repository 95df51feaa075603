"""Base node abstractions."""
