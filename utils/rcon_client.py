# utils/rcon_client.py
from __future__ import annotations

import asyncio
import contextlib
import logging

from aiomcrcon import Client

from exceptions import RconError

log = logging.getLogger(__name__)

# headroom over the client's own timeout before the outer wait_for gives up
_GRACE = 1.0


class RconSession:
    """
    The bridge's single RCON connection.

    One lock guards both round trips and the client swap done by
    `reconnect`, so a command never runs against a half-replaced client.
    """

    def __init__(self, host: str, port: int, password: str, timeout: float = 5.0):
        self.host = host
        self.port = port
        self._password = password
        self.timeout = timeout
        self._client: Client | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def _dial(self) -> Client:
        log.info("[rcon] connecting to %s:%s …", self.host, self.port)
        c = Client(self.host, self.port, self._password)
        try:
            await asyncio.wait_for(c.connect(timeout=self.timeout), timeout=self.timeout + _GRACE)
        except Exception as e:
            with contextlib.suppress(Exception):
                await c.close()
            raise RconError(f"could not connect to {self.host}:{self.port}: {e}") from e
        log.info("[rcon] connected to %s:%s", self.host, self.port)
        return c

    async def connect(self) -> None:
        client = await self._dial()
        async with self._lock:
            old, self._client = self._client, client
        if old is not None:
            with contextlib.suppress(Exception):
                await old.close()

    async def reconnect(self) -> None:
        """Dial a fresh client and swap it in; the old one stays active on failure."""
        await self.connect()

    async def send(self, cmd: str) -> str:
        async with self._lock:
            if self._client is None:
                raise RconError("not connected")
            try:
                out = await asyncio.wait_for(
                    self._client.send_cmd(cmd, timeout=self.timeout),
                    timeout=self.timeout + _GRACE,
                )
            except Exception as e:
                # a late reply would be read as the answer to the next command,
                # so the client is unusable until reconnect
                client, self._client = self._client, None
                with contextlib.suppress(Exception):
                    await client.close()
                if isinstance(e, asyncio.TimeoutError):
                    raise RconError(f"{cmd!r} timed out after {self.timeout}s") from e
                raise RconError(f"{cmd!r} failed: {e}") from e
        # aiomcrcon returns (text, packet type)
        if isinstance(out, tuple):
            out = out[0]
        return out

    async def close(self) -> None:
        async with self._lock:
            client, self._client = self._client, None
        if client is not None:
            with contextlib.suppress(Exception):
                await client.close()
