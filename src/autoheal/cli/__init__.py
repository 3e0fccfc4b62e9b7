"""Command-line interface for autoheal."""
