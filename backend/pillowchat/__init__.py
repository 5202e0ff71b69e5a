"""Pillow Chat - streaming multi-session chat orchestrator."""

__version__ = "1.0.0"
