"""Shared utilities for reqscope."""
