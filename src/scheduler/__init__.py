"""Scheduling backend interface and adapters."""
