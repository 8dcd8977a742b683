#!/usr/bin/env python3
"""
Setup script for liveconfig package.
"""

from setuptools import setup, find_packages

setup(
    name="liveconfig",
    version="0.1.0",
    description="Writable, live-reloading typed configuration monitor",
    author="liveconfig Team",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "json5>=0.9",
        "pydantic>=2.0",
        "rich>=13.0",
        "typer>=0.9",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": ["liveconfig=liveconfig.cli.main:app"],
    },
)
