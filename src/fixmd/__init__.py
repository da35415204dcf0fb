"""Batch Markdown fixer backed by the Gemini API."""

__version__ = "0.1.0"
