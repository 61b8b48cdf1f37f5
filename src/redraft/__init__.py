"""Redraft: rewrite clipboard text with an LLM from the macOS menubar."""

__version__ = "0.1.0"
