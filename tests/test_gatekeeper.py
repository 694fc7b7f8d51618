import asyncio
import pytest
from realtime import ConnectionRegistry, DeliveryFailure
from services.gatekeeper import UpgradeGatekeeper


async def wait_until(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0)
    await asyncio.wait_for(_poll(), timeout)


def make_gatekeeper(fakes, sessions=None, error=None, close_superseded=False):
    registry = ConnectionRegistry()
    resolver = fakes.Resolver(sessions=sessions, error=error)
    return registry, UpgradeGatekeeper(registry, resolver, cookie_name="sid", close_superseded=close_superseded)


def test_valid_session_is_admitted(fakes):
    async def _run():
        registry, gatekeeper = make_gatekeeper(fakes, sessions={"good": 42})
        ws = fakes.WebSocket(cookies={"sid": "good"})
        conn = await gatekeeper.admit(ws)
        assert conn is not None and conn.identity == 42
        assert ws.accepted
        assert registry.get(42) is conn
    asyncio.run(_run())


@pytest.mark.parametrize("cookies", [{}, {"sid": "expired"}, {"other": "good"}])
def test_unauthenticated_handshake_is_rejected(fakes, cookies):
    async def _run():
        registry, gatekeeper = make_gatekeeper(fakes, sessions={"good": 42})
        ws = fakes.WebSocket(cookies=cookies)
        assert await gatekeeper.admit(ws) is None
        assert not ws.accepted
        assert ws.close_code == 1008
        assert len(registry) == 0
    asyncio.run(_run())


def test_resolver_error_fails_closed(fakes):
    async def _run():
        registry, gatekeeper = make_gatekeeper(fakes, error=RuntimeError("session store unavailable"))
        ws = fakes.WebSocket(cookies={"sid": "good"})
        assert await gatekeeper.admit(ws) is None
        assert ws.close_code == 1008
        assert len(registry) == 0
    asyncio.run(_run())


def test_disconnect_removes_entry(fakes):
    async def _run():
        registry, gatekeeper = make_gatekeeper(fakes, sessions={"good": 1})
        ws = fakes.WebSocket(cookies={"sid": "good"})
        task = asyncio.create_task(gatekeeper.serve(ws))
        await wait_until(lambda: 1 in registry)
        conn = registry.get(1)
        ws.drop()
        await task
        assert 1 not in registry
        assert not conn.is_open
        with pytest.raises(DeliveryFailure):
            await conn.send_json({"type": "late"})
    asyncio.run(_run())


def test_ping_gets_pong(fakes):
    async def _run():
        registry, gatekeeper = make_gatekeeper(fakes, sessions={"good": 1})
        ws = fakes.WebSocket(cookies={"sid": "good"})
        task = asyncio.create_task(gatekeeper.serve(ws))
        ws.feed_text("ping")
        ws.feed_text("hello")
        await wait_until(lambda: ws.sent)
        ws.drop()
        await task
        assert ws.sent == [{"type": "pong"}]
    asyncio.run(_run())


def test_stale_close_does_not_evict_newer_connection(fakes):
    async def _run():
        registry, gatekeeper = make_gatekeeper(fakes, sessions={"a": 9, "b": 9})
        first = fakes.WebSocket(cookies={"sid": "a"})
        second = fakes.WebSocket(cookies={"sid": "b"})
        t1 = asyncio.create_task(gatekeeper.serve(first))
        await wait_until(lambda: 9 in registry)
        old = registry.get(9)
        t2 = asyncio.create_task(gatekeeper.serve(second))
        await wait_until(lambda: registry.get(9) is not old)
        newer = registry.get(9)
        # Superseded socket left open by default
        assert first.close_code is None
        first.drop()
        await t1
        assert registry.get(9) is newer
        second.drop()
        await t2
        assert 9 not in registry
    asyncio.run(_run())


def test_superseded_connection_closed_when_enabled(fakes):
    async def _run():
        registry, gatekeeper = make_gatekeeper(fakes, sessions={"a": 9, "b": 9}, close_superseded=True)
        first = fakes.WebSocket(cookies={"sid": "a"})
        second = fakes.WebSocket(cookies={"sid": "b"})
        await gatekeeper.admit(first)
        newer = await gatekeeper.admit(second)
        assert first.close_code == 1008
        assert registry.get(9) is newer
    asyncio.run(_run())
