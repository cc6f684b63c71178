"""
Database package. Re-exports the public query functions of every submodule.

Usage: import database as db; await db.get_gift_item(...)
"""

from db.connection import *  # noqa: F401,F403
from db.users import *  # noqa: F401,F403
from db.sessions import *  # noqa: F401,F403
from db.reset_tokens import *  # noqa: F401,F403
from db.gift_items import *  # noqa: F401,F403
from db.constraints import *  # noqa: F401,F403
from db.mockup_sessions import *  # noqa: F401,F403
from db.audit_log import *  # noqa: F401,F403
