"""Parley tools — caller-supplied functions the model can invoke."""

from .tool import Tool

__all__ = ["Tool"]
