"""Container Gateway test suite."""
