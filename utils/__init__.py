"""Utility helpers used by SnapRelay."""
