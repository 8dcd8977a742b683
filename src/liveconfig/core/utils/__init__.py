"""Utility components: logging and settings path resolution."""
