import pytest

from livequiz.services.registry import ConnectionRegistry, ConnectionRole

from conftest import MockWebSocket


def test_register_hands_out_unique_ids():
    registry = ConnectionRegistry()
    ids = {registry.register(MockWebSocket()) for _ in range(100)}
    assert len(ids) == 100


def test_bind_and_resolve():
    registry = ConnectionRegistry()
    cid = registry.register(MockWebSocket())
    assert registry.resolve(cid).role is None

    registry.bind(cid, ConnectionRole.PARTICIPANT, 4, participant_id=9)
    conn = registry.resolve(cid)
    assert conn.is_participant and not conn.is_host
    assert (conn.session_id, conn.participant_id) == (4, 9)


def test_bind_unknown_connection_returns_none():
    registry = ConnectionRegistry()
    assert registry.bind("missing", ConnectionRole.HOST, 1) is None


def test_for_each_in_session_filters_by_session_and_predicate():
    registry = ConnectionRegistry()
    host = registry.register(MockWebSocket())
    player = registry.register(MockWebSocket())
    other = registry.register(MockWebSocket())
    registry.register(MockWebSocket())  # unbound
    registry.bind(host, ConnectionRole.HOST, 1)
    registry.bind(player, ConnectionRole.PARTICIPANT, 1, participant_id=1)
    registry.bind(other, ConnectionRole.PARTICIPANT, 2, participant_id=2)

    assert {c.id for c in registry.for_each_in_session(1)} == {host, player}
    assert [c.id for c in registry.for_each_in_session(1, lambda c: c.is_participant)] == [player]


def test_mutating_registry_while_iterating_is_safe():
    registry = ConnectionRegistry()
    for _ in range(5):
        registry.bind(registry.register(MockWebSocket()), ConnectionRole.PARTICIPANT, 1)

    for conn in registry.for_each_in_session(1):
        registry.unregister(conn.id)
        registry.bind(registry.register(MockWebSocket()), ConnectionRole.PARTICIPANT, 2)

    assert registry.for_each_in_session(1) == []
    assert len(registry.for_each_in_session(2)) == 5


def test_unregister():
    registry = ConnectionRegistry()
    cid = registry.register(MockWebSocket())
    assert registry.unregister(cid).id == cid
    assert registry.resolve(cid) is None
    assert registry.unregister(cid) is None


@pytest.mark.asyncio
async def test_broadcast_skips_dead_sockets():
    registry = ConnectionRegistry()
    alive_ws, dead_ws = MockWebSocket(), MockWebSocket(fail=True)
    alive = registry.register(alive_ws)
    dead = registry.register(dead_ws)
    registry.bind(alive, ConnectionRole.PARTICIPANT, 1)
    registry.bind(dead, ConnectionRole.PARTICIPANT, 1)

    delivered = await registry.broadcast(1, {"type": "PING", "data": {}})
    assert delivered == 1
    assert alive_ws.all("PING")


@pytest.mark.asyncio
async def test_send_to_unknown_connection():
    registry = ConnectionRegistry()
    assert await registry.send_to(None, {"type": "X"}) is False
    assert await registry.send_to("nope", {"type": "X"}) is False


def test_unbind_clears_role_and_session():
    registry = ConnectionRegistry()
    cid = registry.register(MockWebSocket())
    registry.bind(cid, ConnectionRole.PARTICIPANT, 3, participant_id=8)

    conn = registry.unbind(cid)
    assert (conn.role, conn.session_id, conn.participant_id) == (None, None, None)
    assert registry.for_each_in_session(3) == []
    assert registry.unbind("missing") is None
