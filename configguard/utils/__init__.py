"""Utilities for ConfigGuard."""
