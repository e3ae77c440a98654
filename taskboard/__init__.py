"""Taskboard: task management API with email verification, RBAC and live notifications."""

__version__ = "1.0.0"
