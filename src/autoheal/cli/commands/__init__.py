"""autoheal CLI commands."""
