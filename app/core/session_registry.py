"""Live connection bookkeeping.

One table per role maps an identity to its single live connection. A new
registration for the same identity supersedes the previous one: the old
channel stays open but is no longer reachable through the registry. Only
the connection currently registered for an identity can unregister it, so
a stale channel closing late never removes its successor.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.core.logging import get_logger
from app.core.schemas_chat import ConnectionRole

logger = get_logger(__name__)


class Channel(Protocol):
    """Transport a connection delivers events through."""

    async def send(self, event: str, payload: dict[str, Any]) -> None: ...


@dataclass(eq=False)
class Connection:
    """Ephemeral binding of an identity and role to a live channel."""

    identity: str | None
    role: ConnectionRole
    channel: Channel
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class SessionRegistry:
    """Identity -> live connection, per role. Keyed lookups only."""

    def __init__(self):
        self._tables: dict[ConnectionRole, dict[str, Connection]] = {
            ConnectionRole.USER: {},
            ConnectionRole.OWNER: {},
        }

    def register(self, connection: Connection) -> Connection | None:
        """
        Make ``connection`` the live connection for its identity.

        Returns:
            The superseded connection, if any. A connection without an
            identity is never registered and None is returned.
        """
        if not connection.identity:
            return None

        table = self._tables[connection.role]
        previous = table.get(connection.identity)
        table[connection.identity] = connection

        if previous is not None and previous is not connection:
            logger.info(
                f"{connection.role.value} {connection.identity} superseded connection "
                f"{previous.connection_id}",
                extra={"connection_id": connection.connection_id},
            )
            return previous
        return None

    def unregister(self, connection: Connection) -> bool:
        """Remove ``connection`` if it is still the registered one."""
        if not connection.identity:
            return False

        table = self._tables[connection.role]
        if table.get(connection.identity) is not connection:
            return False

        del table[connection.identity]
        return True

    def lookup(self, role: ConnectionRole, identity: str | None) -> Connection | None:
        if not identity:
            return None
        return self._tables[role].get(identity)

    def is_current(self, connection: Connection) -> bool:
        return self.lookup(connection.role, connection.identity) is connection

    def connected_users(self) -> list[Connection]:
        return list(self._tables[ConnectionRole.USER].values())
