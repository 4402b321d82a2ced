"""Live session routing between users, owners and the AI responder.

Owner resolution for a user is one prioritized chain:

1. the owner id the user declared when connecting (or via setMetadata)
2. the assignment cached for the user in this process
3. the owner stored on the user's conversation

A resolved owner that differs from the stored one is written back, so the
assignment sticks across reconnects. Owner-authored messages only claim a
user that has no owner yet.

Every event is delivered to the exact live connection of its destination.
A missing destination is a silent miss (logged); the message is already
durably appended by then.

Only the current connection of an identity may act. Frames from a
superseded connection are answered with an error and otherwise ignored.
The owner cache holds connected users only; everyone else resolves from
storage.
"""

import logging
from typing import Any

from app.core.ai_takeover import AiTakeover
from app.core.config import get_settings
from app.core.conversation_store import ConversationStore
from app.core.logging import get_logger, log_with_context
from app.core.responder import Responder, ResponderError
from app.core.schemas_chat import (
    ChatMessage,
    ConnectionRole,
    ContactMetadata,
    MessageOrigin,
)
from app.core.session_registry import Channel, Connection, SessionRegistry

logger = get_logger(__name__)

APOLOGY_TEXT = (
    "I apologize, but I'm having trouble processing your message right now. "
    "Please try again or wait for our team to assist you."
)

JOIN_TRANSCRIPT_LIMIT = 50


def _metadata_fields(metadata: ContactMetadata | None) -> dict[str, Any]:
    if metadata is None:
        return {}
    return {
        "username": metadata.username,
        "useremail": metadata.useremail,
        "userphone": metadata.userphone,
    }


class SessionRouter:
    """Routes live chat events and decides who answers each user message."""

    def __init__(
        self,
        registry: SessionRegistry,
        conversations: ConversationStore,
        takeover: AiTakeover,
        responder: Responder,
        ai_timeout: float | None = None,
        history_turns: int | None = None,
    ):
        settings = get_settings()
        self.registry = registry
        self.conversations = conversations
        self.takeover = takeover
        self.responder = responder
        self.ai_timeout = ai_timeout if ai_timeout is not None else settings.AI_RESPONSE_TIMEOUT_SECONDS
        self.history_turns = history_turns or settings.HISTORY_TURNS
        # user_id -> resolved owner_id, connected users only
        self._owners: dict[str, str] = {}
        # user_id -> contact details not yet flushed on disconnect
        self._metadata: dict[str, ContactMetadata] = {}

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _deliver(self, connection: Connection, event: str, payload: dict[str, Any]) -> bool:
        try:
            await connection.channel.send(event, payload)
            return True
        except Exception as e:
            logger.warning(
                f"Failed to deliver {event} to {connection.role.value} {connection.identity}: {e}",
                extra={"connection_id": connection.connection_id},
            )
            return False

    async def forward(
        self, to_role: ConnectionRole, to_identity: str | None, event: str, payload: dict[str, Any]
    ) -> bool:
        """
        Deliver an event to the live connection of one identity.

        Returns:
            True if delivered; False when the destination is not connected
        """
        connection = self.registry.lookup(to_role, to_identity)
        if connection is None:
            log_with_context(
                logger,
                logging.DEBUG,
                f"No live {to_role.value} connection for {to_identity}; {event} not delivered",
                event=event,
                destination=to_identity,
            )
            return False
        return await self._deliver(connection, event, payload)

    async def send_error(self, connection: Connection, message: str) -> None:
        await self._deliver(connection, "error", {"message": message})

    async def _reject_superseded(self, connection: Connection) -> bool:
        """Error out a connection that another one has replaced."""
        if not connection.identity or self.registry.is_current(connection):
            return False
        log_with_context(
            logger,
            logging.INFO,
            f"Ignoring frame from superseded {connection.role.value} connection",
            connection_id=connection.connection_id,
            identity=connection.identity,
        )
        await self.send_error(connection, "Connection superseded")
        return True

    # ------------------------------------------------------------------
    # Owner resolution
    # ------------------------------------------------------------------

    async def resolve_owner(self, user_id: str, declared_owner_id: str | None = None) -> str | None:
        """
        Effective owner of a user: declared, then cached, then stored.

        A declared owner that differs from the stored one is persisted.
        """
        if declared_owner_id:
            if self._owners.get(user_id) != declared_owner_id:
                stored = await self.conversations.stored_owner(user_id)
                if stored != declared_owner_id:
                    await self.conversations.assign_owner(user_id, declared_owner_id)
            self._cache_owner(user_id, declared_owner_id)
            return declared_owner_id

        cached = self._owners.get(user_id)
        if cached:
            return cached

        stored = await self.conversations.stored_owner(user_id)
        if stored:
            self._cache_owner(user_id, stored)
        return stored

    def _cache_owner(self, user_id: str, owner_id: str) -> None:
        if self.registry.lookup(ConnectionRole.USER, user_id) is not None:
            self._owners[user_id] = owner_id

    async def _contact_for(self, user_id: str) -> ContactMetadata | None:
        cached = self._metadata.get(user_id)
        if cached is not None:
            return cached
        try:
            return await self.conversations.contact_metadata(user_id)
        except Exception as e:
            logger.warning(f"Could not load contact details for {user_id}: {e}", extra={"user_id": user_id})
            return None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def register_connection(
        self,
        identity: str | None,
        role: ConnectionRole,
        channel: Channel,
        declared_owner_id: str | None = None,
    ) -> Connection:
        """
        Register a live channel.

        A user without an id is identified by its connection id. An owner
        without an id is accepted but unreachable until it identifies.
        """
        connection = Connection(identity=identity, role=role, channel=channel)
        if role is ConnectionRole.USER and not connection.identity:
            connection.identity = connection.connection_id

        self.registry.register(connection)

        if role is ConnectionRole.OWNER:
            logger.info(
                f"Owner connected: {connection.identity}",
                extra={"owner_id": connection.identity, "connection_id": connection.connection_id},
            )
            return connection

        user_id = connection.identity
        owner_id = await self.resolve_owner(user_id, declared_owner_id)
        logger.info(
            f"User connected: {user_id} (owner {owner_id})",
            extra={"user_id": user_id, "connection_id": connection.connection_id},
        )
        if owner_id:
            await self.forward(
                ConnectionRole.OWNER,
                owner_id,
                "user:connected",
                {"userId": user_id, "ownerId": owner_id},
            )
        return connection

    async def identify_owner(self, connection: Connection, owner_id: str | None = None) -> None:
        """Bind an owner connection to an identity (owner:ready) and list its users."""
        if await self._reject_superseded(connection):
            return
        if owner_id and connection.identity != owner_id:
            if connection.identity:
                self.registry.unregister(connection)
            connection.identity = owner_id
            self.registry.register(connection)

        if not connection.identity:
            await self.send_error(connection, "ownerId is required")
            return

        await self._deliver(connection, "active-users", {"users": self.active_users(connection.identity)})

    async def unregister(self, connection: Connection) -> None:
        """
        Drop a connection.

        A superseded connection is ignored. For a user, ``last_seen`` is
        stamped, cached contact details are flushed and the owner is told.
        """
        if not self.registry.unregister(connection):
            logger.debug(
                f"Ignoring disconnect of stale {connection.role.value} connection",
                extra={"connection_id": connection.connection_id},
            )
            return

        if connection.role is ConnectionRole.OWNER:
            logger.info(f"Owner disconnected: {connection.identity}", extra={"owner_id": connection.identity})
            return

        user_id = connection.identity
        owner_id = self._owners.pop(user_id, None)
        metadata = self._metadata.pop(user_id, None)

        try:
            await self.conversations.mark_last_seen(user_id, metadata)
        except Exception as e:
            logger.error(f"Failed to stamp last_seen for {user_id}: {e}", extra={"user_id": user_id})

        logger.info(f"User disconnected: {user_id}", extra={"user_id": user_id})
        if owner_id:
            await self.forward(
                ConnectionRole.OWNER, owner_id, "user:disconnected", {"userId": user_id}
            )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_user_message(self, connection: Connection, text: str) -> ChatMessage | None:
        """
        Persist a user's message, forward it to the owner, and let the AI
        answer when it is authoritative.

        Returns:
            The AI message appended, or None when the owner answers
        """
        if await self._reject_superseded(connection):
            return None
        user_id = connection.identity
        if not text or not text.strip():
            await self.send_error(connection, "Message text is required")
            return None

        owner_id = await self.resolve_owner(user_id)

        # History excludes the message being answered
        history = await self.conversations.recent(user_id, self.history_turns)
        user_message = await self.conversations.append(
            user_id, MessageOrigin.USER, text, owner_id=owner_id
        )

        if owner_id:
            contact = await self._contact_for(user_id)
            await self.forward(
                ConnectionRole.OWNER,
                owner_id,
                "message",
                {**user_message.to_wire(), "userId": user_id, **_metadata_fields(contact)},
            )

        if not await self.takeover.is_ai_authoritative(user_id):
            log_with_context(
                logger,
                logging.DEBUG,
                f"Admin is handling {user_id}; AI stays silent",
                user_id=user_id,
                owner_id=owner_id,
            )
            return None

        try:
            result = await self.responder.respond(owner_id, text, history, timeout=self.ai_timeout)
            ai_message = await self.conversations.append(
                user_id,
                MessageOrigin.AI,
                result.text,
                owner_id=owner_id,
                context_used=result.context_used,
                sources=result.sources,
            )
        except ResponderError as e:
            logger.error(f"AI reply failed for {user_id}: {e}", extra={"user_id": user_id})
            ai_message = await self.conversations.append(
                user_id, MessageOrigin.AI, APOLOGY_TEXT, owner_id=owner_id, error=True
            )

        payload = {**ai_message.to_wire(), "userId": user_id}
        await self.forward(ConnectionRole.USER, user_id, "message", payload)
        if owner_id:
            await self.forward(ConnectionRole.OWNER, owner_id, "message", payload)
        return ai_message

    async def handle_owner_message(
        self, connection: Connection, user_id: str | None, text: str
    ) -> ChatMessage | None:
        """
        Persist an owner's reply and hand the conversation to the human.

        An owner may answer its own users and claim users without an owner.
        """
        owner_id = connection.identity
        if not owner_id:
            await self.send_error(connection, "ownerId is required")
            return None
        if await self._reject_superseded(connection):
            return None
        if not user_id or not text or not text.strip():
            await self.send_error(connection, "userId and text are required")
            return None

        current = await self.resolve_owner(user_id)
        if current and current != owner_id:
            log_with_context(
                logger,
                logging.WARNING,
                f"Owner {owner_id} tried to message user {user_id} owned by {current}",
                owner_id=owner_id,
                user_id=user_id,
                assigned_owner=current,
            )
            await self.send_error(connection, "User belongs to another owner")
            return None

        await self.takeover.record_owner_message(user_id)
        if current is None:
            await self.conversations.assign_owner(user_id, owner_id)
            self._cache_owner(user_id, owner_id)

        message = await self.conversations.append(
            user_id, MessageOrigin.OWNER, text, owner_id=owner_id
        )

        payload = {**message.to_wire(), "userId": user_id}
        await self.forward(ConnectionRole.USER, user_id, "message", payload)
        await self._deliver(connection, "message", payload)
        return message

    # ------------------------------------------------------------------
    # Metadata, presence, colocation
    # ------------------------------------------------------------------

    async def update_metadata(self, user_id: str, metadata: ContactMetadata) -> str | None:
        """
        Store a user's contact details; an ownerId reassigns the user.

        The resolved owner (after any reassignment) receives
        ``metadata:updated``.

        Returns:
            The user's owner after the update
        """
        await self.conversations.update_metadata(user_id, metadata)
        if metadata.owner_id:
            self._cache_owner(user_id, metadata.owner_id)

        if user_id in self._metadata or self.registry.lookup(ConnectionRole.USER, user_id):
            self._metadata[user_id] = metadata

        owner_id = await self.resolve_owner(user_id)
        if owner_id:
            await self.forward(
                ConnectionRole.OWNER,
                owner_id,
                "metadata:updated",
                {"userId": user_id, "ownerId": owner_id, **_metadata_fields(metadata)},
            )
        return owner_id

    async def set_metadata(self, connection: Connection, data: dict[str, Any]) -> None:
        """setMetadata from a live connection; owners must name the user."""
        if await self._reject_superseded(connection):
            return
        if connection.role is ConnectionRole.USER:
            user_id = data.get("userId") or connection.identity
        else:
            user_id = data.get("userId")
        if not user_id:
            await self.send_error(connection, "userId is required")
            return

        metadata = ContactMetadata(
            username=data.get("username"),
            useremail=data.get("useremail"),
            userphone=data.get("userphone"),
            owner_id=data.get("ownerId"),
        )
        await self.update_metadata(user_id, metadata)

    def active_users(self, owner_id: str) -> list[dict[str, Any]]:
        """Connected users whose resolved owner is ``owner_id``."""
        users = []
        for connection in self.registry.connected_users():
            if self._owners.get(connection.identity) != owner_id:
                continue
            users.append(
                {
                    "userId": connection.identity,
                    **_metadata_fields(self._metadata.get(connection.identity)),
                }
            )
        return users

    async def join_user(self, connection: Connection, user_id: str | None) -> bool:
        """Let an owner follow one of its users; replies with the recent transcript."""
        if await self._reject_superseded(connection):
            return False
        if not user_id:
            await self.send_error(connection, "userId is required")
            return False

        owner_id = await self.resolve_owner(user_id)
        if not connection.identity or owner_id != connection.identity:
            await self.send_error(connection, "Not allowed to join this user")
            return False

        transcript = await self.conversations.recent(user_id, JOIN_TRANSCRIPT_LIMIT)
        await self._deliver(
            connection,
            "user:joined",
            {"userId": user_id, "conversation": [m.to_wire() for m in transcript]},
        )
        return True
