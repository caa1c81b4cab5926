"""Exam Incident Desk: incident management for exam logistics."""

__version__ = "0.1.0"
