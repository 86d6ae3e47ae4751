"""Deployment lifecycle service: Auto-Fix, QA, deploy and self-healing."""

__version__ = "0.1.0"
