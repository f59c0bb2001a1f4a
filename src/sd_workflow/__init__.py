"""
sd-workflow: task and project workflow board backed by a remote PostgREST
store (polling sync) or an offline SQLite snapshot.
"""

__version__ = "0.1.0"
