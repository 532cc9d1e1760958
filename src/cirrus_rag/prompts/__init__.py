"""Packaged prompt templates (``default.json``)."""
