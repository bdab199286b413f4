"""Candidate evaluation service: asynchronous CV and project report scoring."""

__version__ = "1.0.0"
