"""Shared domain types and infrastructure."""
