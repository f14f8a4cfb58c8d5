"""Shared helpers for Marketplace Identity."""
