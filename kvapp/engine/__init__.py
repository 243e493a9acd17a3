"""
Store access: the engine wrapper and the shared server state.
"""

from kvapp.engine.store import StoreHandle
from kvapp.engine.state import ServerState

__all__ = ["StoreHandle", "ServerState"]
