"""Integration tests that drive the CLI as a subprocess."""
