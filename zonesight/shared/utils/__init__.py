"""Utility helpers: errors, pips, retry, logging."""
