"""autoheal - autonomous healing and remediation engine."""

__version__ = "0.1.0"
