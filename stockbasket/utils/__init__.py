"""Shared utilities: configuration, logging and the exception hierarchy."""
