"""Shared helpers for paths and formatting."""
