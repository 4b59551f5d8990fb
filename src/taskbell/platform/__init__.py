"""
Local scheduling platform.

Components:
- request_store.py: SQLite-backed storage of scheduled reminder requests + permission state
- local_platform.py: SchedulingPort implementation on top of the store
- delivery.py: polling loop that fires due reminders through a presenter
"""
