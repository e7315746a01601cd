"""Shared pytest configuration."""

pytest_plugins = ["shopauth.testing.fixtures"]
