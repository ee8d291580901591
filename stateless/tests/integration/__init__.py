"""Threaded tests running the full simulation."""
