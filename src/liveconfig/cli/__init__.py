"""Command-line interface for liveconfig."""
