"""Endpoint modules for the snapshot store (internal)."""
