import logging

from .events import Connection


class PresenceRegistry:
    """
    Who is online right now.

    Holds the identity <-> connection mapping in both directions, one active
    connection per identity. A newer connection for the same identity replaces
    the older handle (last writer wins); the older connection is not closed.
    """
    def __init__(self, logger: logging.Logger | None = None):
        self._identity_by_handle: dict[str, int] = {}
        self._handle_by_identity: dict[int, Connection] = {}
        self.logger = logger or logging.getLogger(__name__)

    def register(self, identity: int, connection: Connection) -> Connection | None:
        """
        Bind identity to connection.
        Returns: the previously bound connection for this identity, if any
        """
        previous = self._handle_by_identity.get(identity)
        if previous is not None and previous.id == connection.id:
            previous = None

        if previous is not None:
            # the stale handle no longer resolves to anyone
            self._identity_by_handle.pop(previous.id, None)
            self.logger.info("User %s replaced connection %s with %s", identity, previous.id, connection.id)

        self._identity_by_handle[connection.id] = identity
        self._handle_by_identity[identity] = connection
        return previous

    def unregister(self, connection: Connection) -> int | None:
        """
        Remove the binding of connection, if it has one. Safe to call repeatedly.
        Returns: the identity that went offline, or None
        """
        identity = self._identity_by_handle.pop(connection.id, None)
        if identity is None:
            return None

        current = self._handle_by_identity.get(identity)
        if current is not None and current.id == connection.id:
            del self._handle_by_identity[identity]
        return identity

    def is_online(self, identity: int) -> bool:
        return identity in self._handle_by_identity

    def handle_for(self, identity: int) -> Connection | None:
        return self._handle_by_identity.get(identity)

    def snapshot_online_identities(self) -> set[int]:
        return set(self._handle_by_identity)
