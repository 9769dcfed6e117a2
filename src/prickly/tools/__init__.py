"""Maintenance utilities for param files."""
