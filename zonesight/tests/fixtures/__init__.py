"""Reusable builders and fake providers for tests."""
