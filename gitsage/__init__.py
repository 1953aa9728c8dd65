"""Conventional Commits message generation for staged Git changes using AI providers."""

__version__ = "0.1.0"