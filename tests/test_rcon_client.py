import asyncio

import pytest

from exceptions import RconError
from utils import rcon_client
from utils.rcon_client import RconSession

pytestmark = pytest.mark.asyncio


class FakeClient:
    """
    Stands in for aiomcrcon.Client. Like a real socket, replies come back in
    request order: a command that timed out leaves its reply pending, and the
    next read picks it up.
    """

    instances: list["FakeClient"] = []
    fail_connect = False
    delays: dict[str, float] = {}

    def __init__(self, host, port, password):
        self.host, self.port, self.password = host, port, password
        self.closed = False
        self.closed_while_busy = False
        self.sent: list[str] = []
        self.timeouts: list[float] = []
        self.backlog: list[str] = []
        self.active = 0
        self.max_active = 0
        FakeClient.instances.append(self)

    async def connect(self, timeout=2.0):
        self.timeouts.append(timeout)
        if FakeClient.fail_connect:
            raise ConnectionRefusedError("refused")

    async def send_cmd(self, cmd, timeout=2.0):
        self.timeouts.append(timeout)
        self.sent.append(cmd)
        self.backlog.append(cmd)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = FakeClient.delays.get(cmd, 0)
            if delay > timeout:
                await asyncio.sleep(timeout)
                raise asyncio.TimeoutError
            await asyncio.sleep(delay)
            answered = self.backlog.pop(0)
            return f"reply to {answered}", 0
        finally:
            self.active -= 1

    async def close(self):
        self.closed_while_busy = self.active > 0
        self.closed = True


@pytest.fixture(autouse=True)
def fake_client(monkeypatch):
    FakeClient.instances = []
    FakeClient.fail_connect = False
    FakeClient.delays = {}
    monkeypatch.setattr(rcon_client, "Client", FakeClient)
    return FakeClient


async def test_send_returns_text():
    s = RconSession("localhost", 25575, "x")
    await s.connect()
    assert s.connected
    assert await s.send("whitelist list") == "reply to whitelist list"


async def test_send_without_connection_raises():
    s = RconSession("localhost", 25575, "x")
    with pytest.raises(RconError):
        await s.send("whitelist list")


async def test_configured_timeout_reaches_client(fake_client):
    s = RconSession("localhost", 25575, "x", timeout=10.0)
    await s.connect()
    await s.send("whitelist list")
    assert fake_client.instances[0].timeouts == [10.0, 10.0]


async def test_connect_failure_raises_rcon_error(fake_client):
    fake_client.fail_connect = True
    s = RconSession("localhost", 25575, "x")
    with pytest.raises(RconError):
        await s.connect()
    assert not s.connected
    assert fake_client.instances[0].closed


async def test_timed_out_reply_never_answers_next_command(fake_client):
    fake_client.delays = {"whitelist add Steve": 0.5}
    s = RconSession("localhost", 25575, "x", timeout=0.2)
    await s.connect()
    with pytest.raises(RconError, match="timed out"):
        await s.send("whitelist add Steve")

    # the stale client is dropped; no late "add" reply leaks into "list"
    assert not s.connected
    assert fake_client.instances[0].closed
    with pytest.raises(RconError, match="not connected"):
        await s.send("whitelist list")

    await s.reconnect()
    assert await s.send("whitelist list") == "reply to whitelist list"


async def test_reconnect_swaps_and_closes_old(fake_client):
    s = RconSession("localhost", 25575, "x")
    await s.connect()
    await s.reconnect()
    old, new = fake_client.instances
    assert old.closed and not new.closed
    await s.send("whitelist reload")
    assert new.sent == ["whitelist reload"] and old.sent == []


async def test_failed_reconnect_keeps_old_client(fake_client):
    s = RconSession("localhost", 25575, "x")
    await s.connect()
    fake_client.fail_connect = True
    with pytest.raises(RconError):
        await s.reconnect()
    old = fake_client.instances[0]
    assert not old.closed
    await s.send("whitelist list")
    assert old.sent == ["whitelist list"]


async def test_reconnect_after_failed_initial_connect(fake_client):
    s = RconSession("localhost", 25575, "x")
    fake_client.fail_connect = True
    with pytest.raises(RconError):
        await s.connect()
    fake_client.fail_connect = False
    await s.reconnect()
    assert await s.send("whitelist list") == "reply to whitelist list"


async def test_concurrent_sends_are_serialized(fake_client):
    fake_client.delays = {"whitelist add Steve": 0.05, "whitelist add Alex": 0.05}
    s = RconSession("localhost", 25575, "x")
    await s.connect()
    results = await asyncio.gather(
        s.send("whitelist add Steve"),
        s.send("whitelist add Alex"),
        s.send("whitelist list"),
    )
    assert results == ["reply to whitelist add Steve", "reply to whitelist add Alex", "reply to whitelist list"]
    assert fake_client.instances[0].max_active == 1


async def test_reconnect_waits_for_in_flight_send(fake_client):
    fake_client.delays = {"whitelist list": 0.05}
    s = RconSession("localhost", 25575, "x")
    await s.connect()
    send = asyncio.create_task(s.send("whitelist list"))
    await asyncio.sleep(0)  # let the send take the lock
    await s.reconnect()
    assert await send == "reply to whitelist list"
    old, new = fake_client.instances
    assert old.closed and not old.closed_while_busy
    assert old.sent == ["whitelist list"] and new.sent == []


async def test_close():
    s = RconSession("localhost", 25575, "x")
    await s.connect()
    await s.close()
    assert not s.connected
    with pytest.raises(RconError):
        await s.send("whitelist list")
