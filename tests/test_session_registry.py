"""Tests for live connection bookkeeping."""

from app.core.schemas_chat import ConnectionRole
from app.core.session_registry import Connection, SessionRegistry
from tests.fakes.fake_clients import RecordingChannel


def _connection(identity, role=ConnectionRole.USER):
    return Connection(identity=identity, role=role, channel=RecordingChannel())


def test_register_and_lookup():
    registry = SessionRegistry()
    connection = _connection("u1")

    assert registry.register(connection) is None
    assert registry.lookup(ConnectionRole.USER, "u1") is connection
    assert registry.lookup(ConnectionRole.OWNER, "u1") is None


def test_latest_registration_supersedes():
    registry = SessionRegistry()
    first = _connection("acme", ConnectionRole.OWNER)
    second = _connection("acme", ConnectionRole.OWNER)

    registry.register(first)
    assert registry.register(second) is first
    assert registry.is_current(second)
    assert not registry.is_current(first)


def test_only_current_connection_unregisters():
    registry = SessionRegistry()
    stale = _connection("u1")
    current = _connection("u1")
    registry.register(stale)
    registry.register(current)

    assert registry.unregister(stale) is False
    assert registry.lookup(ConnectionRole.USER, "u1") is current
    assert registry.unregister(current) is True
    assert registry.connected_users() == []


def test_connection_without_identity_is_not_registered():
    registry = SessionRegistry()

    assert registry.register(_connection(None, ConnectionRole.OWNER)) is None
    assert registry.lookup(ConnectionRole.OWNER, None) is None
