from abc import ABC, abstractmethod

from .dto import (
    UserDTO,
    UserCredentialsDTO,
    ContactDTO,
    ContactWithUserDTO,
    BlockDTO,
    BlockWithUserDTO,
    MessageDTO,
)

class UserInterface(ABC):
    @abstractmethod
    async def create_user(
            self,
            username: str,
            email: str,
            hashed_password: str,
            avatar: str
    ) -> UserDTO:
        """
        Creates a new user in the database.
        :param username:
        :param email:
        :param hashed_password:
        :param avatar:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_user_by_id(
            self,
            user_id: int
    ) -> UserDTO | None:
        """
        Get user by User.id
        :param user_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_users_by_ids(
            self,
            user_ids: list[int]
    ) -> list[UserDTO]:
        """
        Get several users in one query
        :param user_ids:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_user_by_username(
            self,
            username: str
    ) -> UserDTO | None:
        """
        Get user by User.username, compared case-insensitively
        :param username:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_user_by_email(
            self,
            email: str
    ) -> UserDTO | None:
        """
        Get user by User.email, compared case-insensitively
        :param email:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_credentials_by_username(
            self,
            username: str
    ) -> UserCredentialsDTO | None:
        """
        Get user together with the password hash, for login only
        :param username:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_all_users(self) -> list[UserDTO]:
        """
        All users ordered by username
        :return:
        """
        raise NotImplementedError()


class ContactInterface(ABC):
    @abstractmethod
    async def add_contact(
            self,
            owner_id: int,
            contact_id: int,
            contact_name: str
    ) -> ContactDTO:
        """
        Adds a contact (owner -> target) to the database.
        :param owner_id:
        :param contact_id:
        :param contact_name: local alias
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_contact(
            self,
            owner_id: int,
            contact_id: int
    ) -> ContactDTO | None:
        """
        Gets the contact row for an (owner, target) pair.
        :param owner_id:
        :param contact_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_contacts(
            self,
            owner_id: int
    ) -> list[ContactWithUserDTO]:
        """
        Gets all contacts of a user with the target's profile.
        :param owner_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def delete_contact(
            self,
            owner_id: int,
            contact_row_id: int
    ) -> bool:
        """
        Removes a contact by its id, only if it belongs to owner.
        :param owner_id:
        :param contact_row_id:
        :return: True if a row was removed
        """
        raise NotImplementedError()

    @abstractmethod
    async def add_block(
            self,
            owner_id: int,
            blocked_id: int
    ) -> BlockDTO:
        """
        Adds a block (owner -> blocked).
        :param owner_id:
        :param blocked_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_block(
            self,
            owner_id: int,
            blocked_id: int
    ) -> BlockDTO | None:
        """
        Gets the block row for an (owner, blocked) pair.
        :param owner_id:
        :param blocked_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_blocks(
            self,
            owner_id: int
    ) -> list[BlockWithUserDTO]:
        """
        Gets all users blocked by owner.
        :param owner_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def delete_block(
            self,
            owner_id: int,
            blocked_id: int
    ) -> bool:
        """
        Removes a block.
        :param owner_id:
        :param blocked_id:
        :return: True if a row was removed
        """
        raise NotImplementedError()


class MessageInterface(ABC):
    @abstractmethod
    async def create_message(
            self,
            sender_id: int,
            receiver_id: int,
            body: str
    ) -> MessageDTO:
        """
        Creates a new message in the database.
        :param sender_id:
        :param receiver_id:
        :param body:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_message_by_id(
            self,
            message_id: int
    ) -> MessageDTO | None:
        """
        Gets a message by ID.
        :param message_id:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def update_message_body(
            self,
            message_id: int,
            body: str
    ) -> MessageDTO | None:
        """
        Replaces the body and flags the message as edited.
        :param message_id:
        :param body:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def mark_as_deleted(
            self,
            message_id: int,
            tombstone: str
    ) -> MessageDTO | None:
        """
        Soft-deletes a message for both parties.
        :param message_id:
        :param tombstone: placeholder body
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def hide_message(
            self,
            message_id: int,
            user_id: int
    ) -> bool:
        """
        Hides a message from one viewer. Repeated calls are no-ops.
        :param message_id:
        :param user_id:
        :return: True if a new marker was stored
        """
        raise NotImplementedError()

    @abstractmethod
    async def mark_as_delivered(
            self,
            message_ids: list[int]
    ) -> int:
        """
        Marks messages as delivered.
        :param message_ids:
        :return: number of rows changed
        """
        raise NotImplementedError()

    @abstractmethod
    async def mark_received_as_delivered(
            self,
            receiver_id: int,
            sender_id: int
    ) -> int:
        """
        Marks every undelivered message sender -> receiver as delivered.
        :param receiver_id:
        :param sender_id:
        :return: number of rows changed
        """
        raise NotImplementedError()

    @abstractmethod
    async def mark_as_read(
            self,
            sender_id: int,
            receiver_id: int
    ) -> int:
        """
        Marks every unread message sender -> receiver as read.
        :param sender_id:
        :param receiver_id:
        :return: number of newly read messages
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_conversation_history(
            self,
            viewer_id: int,
            other_id: int,
            limit: int = 50
    ) -> list[MessageDTO]:
        """
        Gets the latest messages between two users visible to viewer, oldest first.
        :param viewer_id:
        :param other_id:
        :param limit:
        :return:
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_unread_counts(
            self,
            receiver_id: int
    ) -> dict[int, int]:
        """
        Counts unread messages for receiver grouped by sender.
        :param receiver_id:
        :return: sender_id -> count
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_messages_for_user(
            self,
            user_id: int
    ) -> list[MessageDTO]:
        """
        Gets every message the user sent or received and has not hidden.
        :param user_id:
        :return:
        """
        raise NotImplementedError()
