"""Logging helpers shared by the library and the CLI."""
