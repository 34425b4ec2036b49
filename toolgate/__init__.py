"""Tool-calling gateway for locally hosted language models."""

__version__ = "0.1.0"
