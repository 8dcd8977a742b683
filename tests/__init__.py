"""
Test suite for liveconfig.

This file prevents Python from treating `tests` as a namespace package, so
`from tests.conftest import ...` resolves to this checkout.

Tests mirror the package layout:

- core/config/: providers, root, binding, persistence, monitors
- core/utils/: logging and path resolution
- cli/: command-line interface
"""
