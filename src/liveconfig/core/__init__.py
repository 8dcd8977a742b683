"""
Core modules for liveconfig.

- config: Providers, configuration root, binding, persistence and monitors
- utils: Logging and settings path resolution
"""
