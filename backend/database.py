"""
PostgreSQL access for the gift mockup service.

Query functions live in the db package; this module re-exports them so
callers can `import database as db` and monkeypatch a single namespace.
"""

from db import *  # noqa: F401,F403
