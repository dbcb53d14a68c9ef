#!/usr/bin/env python3
"""
respkv Setup Script
===================
Allows installation of the respkv package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # Development install with test tools
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="respkv",
    version="1.0.0",
    description="Minimal in-memory key-value server speaking RESP",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "respkv=respkv.server:main",
        ],
    },
)
