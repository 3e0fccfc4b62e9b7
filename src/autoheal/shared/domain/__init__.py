"""Domain-level primitives shared across autoheal."""
