"""taskbell: local task reminders that survive restarts."""

__version__ = "0.1.0"
