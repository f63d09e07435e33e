"""Capture adapters and report persistence."""
