"""Pytest configuration for the htest test suite."""

pytest_plugins = ["pytester"]
