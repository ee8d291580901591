"""Unit tests for the simulation actors and their state."""
