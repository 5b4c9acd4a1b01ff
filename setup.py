#!/usr/bin/env python3
"""
Setup script for the Tianyi router client

Kept for tools that still invoke setup.py directly; all metadata lives in
pyproject.toml.
"""

from setuptools import setup

setup()
