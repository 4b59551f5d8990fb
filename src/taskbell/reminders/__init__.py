"""
Reminder subsystem.

Components:
- models.py: data structures (Task, ScheduledReminder, PermissionStatus, ...)
- permissions.py: permission gatekeeper (one boolean capability check)
- manager.py: reminder lifecycle manager (schedule / cancel / list / reconcile)
"""
