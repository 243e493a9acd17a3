"""
HTTP front end for a single embedded key-value store.

The service exposes:
- GET /            - service description
- GET /health      - store liveness probe
- GET /api/{key}   - read a value (raw bytes)
- PUT /api/{key}   - write a value (request body)
- DELETE /api/{key} - remove a value
"""

from kvapp.engine.state import ServerState
from kvapp.engine.store import StoreHandle

APP_NAME = "kvapp"
__version__ = "0.4.0"

__all__ = ["APP_NAME", "ServerState", "StoreHandle", "__version__"]
