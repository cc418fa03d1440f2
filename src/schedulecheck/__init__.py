"""Exam schedule lookup with login-history accounting."""

__version__ = "0.1.0"
