"""Interactive fabcar command-line client."""
