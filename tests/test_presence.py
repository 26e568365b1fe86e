"""Tests for the online registry."""

from relaychat.services.presence import PresenceRegistry

from conftest import RecordingConnection


class TestRegister:
    def test_register_binds_both_directions(self):
        presence = PresenceRegistry()
        conn = RecordingConnection()

        assert presence.register(1, conn) is None
        assert presence.is_online(1)
        assert presence.handle_for(1) is conn
        assert presence.unregister(conn) == 1
        assert not presence.is_online(1)

    def test_newer_connection_replaces_older(self):
        """Last writer wins; the old handle stops resolving."""
        presence = PresenceRegistry()
        first, second = RecordingConnection(), RecordingConnection()

        presence.register(1, first)
        previous = presence.register(1, second)

        assert previous is first
        assert presence.handle_for(1) is second
        # the replaced handle no longer maps to anyone
        assert presence.unregister(first) is None
        assert presence.handle_for(1) is second

    def test_registering_same_connection_twice_is_not_a_replacement(self):
        presence = PresenceRegistry()
        conn = RecordingConnection()

        presence.register(1, conn)
        assert presence.register(1, conn) is None
        assert presence.handle_for(1) is conn


class TestUnregister:
    def test_unregister_returns_identity_once(self):
        presence = PresenceRegistry()
        conn = RecordingConnection()
        presence.register(7, conn)

        assert presence.unregister(conn) == 7
        assert presence.unregister(conn) is None
        assert not presence.is_online(7)
        assert presence.snapshot_online_identities() == set()

    def test_unregister_unknown_connection_is_noop(self):
        presence = PresenceRegistry()
        presence.register(1, RecordingConnection())

        assert presence.unregister(RecordingConnection()) is None
        assert presence.is_online(1)

    def test_closing_superseded_connection_keeps_user_online(self):
        presence = PresenceRegistry()
        first, second = RecordingConnection(), RecordingConnection()
        presence.register(1, first)
        presence.register(1, second)

        assert presence.unregister(first) is None
        assert presence.is_online(1)
        assert presence.handle_for(1) is second

    def test_snapshot_is_a_copy(self):
        presence = PresenceRegistry()
        presence.register(1, RecordingConnection())

        snapshot = presence.snapshot_online_identities()
        snapshot.add(99)

        assert presence.snapshot_online_identities() == {1}
