"""
ServerState - the single shared store handle and its access lock.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import TypeVar

from kvapp.engine.store import StoreHandle
from kvapp.models.config import StoreConfig
from kvapp.models.exceptions import ConfigError, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServerState:
    """
    Process-wide owner of the store handle.

    All store access goes through run(), which holds one asyncio.Lock for
    the duration of a single store operation. The blocking engine call is
    executed in the event loop's default thread pool so the loop keeps
    serving other connections while it waits.

    Operations are linearizable in lock acquisition order.
    """

    def __init__(self, name: str, store: StoreHandle) -> None:
        """
        Initialize server state.

        Args:
            name: External nickname of the store.
            store: Open StoreHandle, owned by this state from now on.
        """
        self._name = name
        self._store = store
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: StoreConfig) -> "ServerState":
        """
        Open the configured store and wrap it.

        Raises:
            ConfigError: If the store cannot be opened at config.path.
        """
        try:
            store = StoreHandle.open(config.path)
        except StoreError as e:
            raise ConfigError(
                f"cannot open database '{config.name}' at {config.path}: {e.cause}"
            ) from e
        return cls(config.name, store)

    @property
    def name(self) -> str:
        return self._name

    @property
    def store(self) -> StoreHandle:
        return self._store

    async def run(self, op: Callable[..., T], *args) -> T:
        """
        Run one store operation under the state lock.

        Args:
            op: Bound StoreHandle method, e.g. state.store.get.
            *args: Positional arguments for op.

        Returns:
            Whatever op returns. StoreError propagates unchanged.
        """
        loop = asyncio.get_running_loop()
        async with self._lock:
            future = loop.run_in_executor(None, op, *args)
            try:
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                # The lock stays held until the engine call has returned
                await asyncio.wait({future})
                raise

    async def get(self, key: bytes) -> bytes | None:
        return await self.run(self._store.get, key)

    async def put(self, key: bytes, value: bytes) -> None:
        await self.run(self._store.put, key, value)

    async def delete(self, key: bytes) -> bool:
        return await self.run(self._store.delete, key)

    async def health(self) -> int:
        return await self.run(self._store.health)

    async def close(self) -> None:
        """Flush and close the store."""
        await self.run(self._store.close)
