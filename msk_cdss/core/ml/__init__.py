"""Placeholder bridge to a future ML diagnosis service."""
from .bridge import MLBridge

__all__ = ["MLBridge"]
