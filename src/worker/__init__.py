"""Per-task worker wrapper."""
