"""Tests for edits, deletions, read receipts and conversation views."""

import pytest

from relaychat.core.exceptions import ValidationError, MessageNotFound, NotAuthorized

from conftest import RecordingConnection


async def send(services, sender, receiver, body):
    result = await services.router.send(sender.user.id, receiver.user.id, body)
    return result.message


class TestEdit:
    @pytest.mark.asyncio
    async def test_sender_can_edit(self, services, alice, bob):
        message = await send(services, alice, bob, "helo")
        receiver, origin = RecordingConnection(), RecordingConnection()
        services.presence.register(bob.user.id, receiver)

        result = await services.conversation.edit(alice.user.id, message.id, "hello", origin=origin)

        assert result.message.body == "hello"
        assert result.message.is_edited is True
        assert result.message.edited_at is not None
        assert [(e.name, e.target) for e in result.events] == [
            ("message-edited", receiver),
            ("message-edit-confirmed", origin),
        ]
        assert result.events[0].payload["messageId"] == message.id
        assert result.events[0].payload["message"] == "hello"
        assert result.events[0].payload["edited"] is True

    @pytest.mark.asyncio
    async def test_offline_receiver_gets_no_edit_event(self, services, alice, bob):
        message = await send(services, alice, bob, "helo")

        result = await services.conversation.edit(alice.user.id, message.id, "hello")

        assert result.events == []
        stored = await services.messages.get_message_by_id(message.id)
        assert stored.body == "hello"

    @pytest.mark.asyncio
    async def test_receiver_cannot_edit(self, services, alice, bob):
        message = await send(services, alice, bob, "original")

        with pytest.raises(NotAuthorized):
            await services.conversation.edit(bob.user.id, message.id, "tampered")

        stored = await services.messages.get_message_by_id(message.id)
        assert stored.body == "original"
        assert stored.is_edited is False

    @pytest.mark.asyncio
    async def test_unknown_message(self, services, alice):
        with pytest.raises(MessageNotFound):
            await services.conversation.edit(alice.user.id, 4242, "text")

    @pytest.mark.asyncio
    async def test_empty_edit_rejected(self, services, alice, bob):
        message = await send(services, alice, bob, "original")

        with pytest.raises(ValidationError):
            await services.conversation.edit(alice.user.id, message.id, "   ")

    @pytest.mark.asyncio
    async def test_deleted_message_cannot_be_edited(self, services, alice, bob):
        message = await send(services, alice, bob, "original")
        await services.conversation.delete(alice.user.id, message.id, for_everyone=True)

        with pytest.raises(NotAuthorized):
            await services.conversation.edit(alice.user.id, message.id, "revived")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_for_everyone_leaves_tombstone(self, services, alice, bob):
        message = await send(services, alice, bob, "oops")
        receiver, origin = RecordingConnection(), RecordingConnection()
        services.presence.register(bob.user.id, receiver)

        result = await services.conversation.delete(alice.user.id, message.id, for_everyone=True, origin=origin)

        assert result.for_everyone is True
        assert [(e.name, e.target) for e in result.events] == [
            ("message-deleted", receiver),
            ("message-delete-confirmed", origin),
        ]
        assert result.events[0].payload == {"messageId": message.id, "deleteForEveryone": True}

        for viewer, other in ((alice, bob), (bob, alice)):
            history = await services.conversation.history(viewer.user.id, other.user.id)
            assert len(history) == 1
            assert history[0].body == "This message was deleted"
            assert history[0].is_deleted is True

    @pytest.mark.asyncio
    async def test_only_sender_deletes_for_everyone(self, services, alice, bob):
        message = await send(services, alice, bob, "mine")

        with pytest.raises(NotAuthorized):
            await services.conversation.delete(bob.user.id, message.id, for_everyone=True)

        stored = await services.messages.get_message_by_id(message.id)
        assert stored.is_deleted is False

    @pytest.mark.asyncio
    async def test_delete_for_me_hides_only_for_actor(self, services, alice, bob):
        message = await send(services, alice, bob, "private")
        receiver = RecordingConnection()
        services.presence.register(bob.user.id, receiver)

        result = await services.conversation.delete(alice.user.id, message.id, for_everyone=False)

        # the counterpart is not told about a delete-for-me
        assert result.events == []
        assert await services.conversation.history(alice.user.id, bob.user.id) == []
        bob_view = await services.conversation.history(bob.user.id, alice.user.id)
        assert [m.body for m in bob_view] == ["private"]

    @pytest.mark.asyncio
    async def test_receiver_can_delete_for_self(self, services, alice, bob):
        message = await send(services, alice, bob, "spam")

        await services.conversation.delete(bob.user.id, message.id, for_everyone=False)

        assert await services.conversation.history(bob.user.id, alice.user.id) == []
        assert await services.conversation.unread_counts_for(bob.user.id) == {}

    @pytest.mark.asyncio
    async def test_outsider_cannot_delete(self, services, alice, bob):
        carol = await services.register("carol")
        message = await send(services, alice, bob, "between us")

        with pytest.raises(NotAuthorized):
            await services.conversation.delete(carol.user.id, message.id, for_everyone=False)

    @pytest.mark.asyncio
    async def test_unknown_message(self, services, alice):
        with pytest.raises(MessageNotFound):
            await services.conversation.delete(alice.user.id, 4242, for_everyone=False)


class TestReadReceipts:
    @pytest.mark.asyncio
    async def test_mark_read_notifies_online_sender(self, services, alice, bob):
        await send(services, alice, bob, "one")
        await send(services, alice, bob, "two")
        sender = RecordingConnection()
        services.presence.register(alice.user.id, sender)

        result = await services.conversation.mark_read(bob.user.id, alice.user.id)

        assert result.marked == 2
        assert [(e.name, e.target, e.payload) for e in result.events] == [
            ("messages-read", sender, {"userId": bob.user.id}),
        ]
        assert await services.conversation.unread_counts_for(bob.user.id) == {}

    @pytest.mark.asyncio
    async def test_nothing_to_mark_emits_nothing(self, services, alice, bob):
        services.presence.register(alice.user.id, RecordingConnection())

        result = await services.conversation.mark_read(bob.user.id, alice.user.id)

        assert result.marked == 0
        assert result.events == []

    @pytest.mark.asyncio
    async def test_second_mark_read_is_silent(self, services, alice, bob):
        await send(services, alice, bob, "once")
        services.presence.register(alice.user.id, RecordingConnection())

        first = await services.conversation.mark_read(bob.user.id, alice.user.id)
        history = await services.conversation.history(bob.user.id, alice.user.id)
        again = await services.conversation.mark_read(bob.user.id, alice.user.id)

        assert first.marked == 1
        assert history[0].is_read is True
        assert again.marked == 0
        assert again.events == []

    @pytest.mark.asyncio
    async def test_mark_read_only_touches_one_direction(self, services, alice, bob):
        await send(services, alice, bob, "to bob")
        await send(services, bob, alice, "to alice")

        await services.conversation.mark_read(bob.user.id, alice.user.id)

        assert await services.conversation.unread_counts_for(bob.user.id) == {}
        assert await services.conversation.unread_counts_for(alice.user.id) == {bob.user.id: 1}


class TestViews:
    @pytest.mark.asyncio
    async def test_history_is_chronological_and_annotated(self, services, alice, bob):
        await send(services, alice, bob, "first")
        await send(services, bob, alice, "second")
        await send(services, alice, bob, "third")

        history = await services.conversation.history(alice.user.id, bob.user.id)

        assert [m.body for m in history] == ["first", "second", "third"]
        assert history[0].sender_username == "alice"
        assert history[0].receiver_username == "bob"
        assert history[1].sender_username == "bob"

    @pytest.mark.asyncio
    async def test_history_limit_keeps_most_recent(self, services, alice, bob):
        for i in range(5):
            await send(services, alice, bob, f"m{i}")

        history = await services.conversation.history(alice.user.id, bob.user.id, limit=2)

        assert [m.body for m in history] == ["m3", "m4"]

    @pytest.mark.asyncio
    async def test_history_rejects_non_positive_limit(self, services, alice, bob):
        with pytest.raises(ValidationError):
            await services.conversation.history(alice.user.id, bob.user.id, limit=0)

    @pytest.mark.asyncio
    async def test_history_excludes_other_conversations(self, services, alice, bob):
        carol = await services.register("carol")
        await send(services, alice, bob, "for bob")
        await send(services, alice, carol, "for carol")

        history = await services.conversation.history(alice.user.id, bob.user.id)

        assert [m.body for m in history] == ["for bob"]

    @pytest.mark.asyncio
    async def test_fetching_history_marks_received_delivered(self, services, alice, bob):
        message = await send(services, alice, bob, "stored")

        # the sender reading history does not count as delivery
        await services.conversation.history(alice.user.id, bob.user.id)
        assert (await services.messages.get_message_by_id(message.id)).is_delivered is False

        await services.conversation.history(bob.user.id, alice.user.id)
        assert (await services.messages.get_message_by_id(message.id)).is_delivered is True

    @pytest.mark.asyncio
    async def test_unread_counts_grouped_by_sender(self, services, alice, bob):
        carol = await services.register("carol")
        await send(services, alice, bob, "a1")
        await send(services, alice, bob, "a2")
        await send(services, carol, bob, "c1")

        counts = await services.conversation.unread_counts_for(bob.user.id)

        assert counts == {alice.user.id: 2, carol.user.id: 1}

    @pytest.mark.asyncio
    async def test_chat_list(self, services, alice, bob):
        carol = await services.register("carol")
        await send(services, bob, alice, "from bob")
        await send(services, alice, carol, "to carol")
        await send(services, carol, alice, "carol replies")

        chats = await services.conversation.chat_list(alice.user.id)

        assert [c.username for c in chats] == ["carol", "bob"]
        carol_chat, bob_chat = chats
        assert carol_chat.last_message == "carol replies"
        assert carol_chat.is_sent is False
        assert carol_chat.unread_count == 1
        assert bob_chat.last_message == "from bob"
        assert bob_chat.unread_count == 1

    @pytest.mark.asyncio
    async def test_chat_list_empty(self, services, alice):
        assert await services.conversation.chat_list(alice.user.id) == []
