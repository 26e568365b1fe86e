from sqlalchemy import select, insert, update, delete, func, or_, and_, exists
from sqlalchemy.exc import SQLAlchemyError
import logging

from .database import User, Contact, Block, Message, HiddenMessage, utcnow
from .interfaces import UserInterface, ContactInterface, MessageInterface
from .dto import (
    UserDTO,
    UserCredentialsDTO,
    ContactDTO,
    ContactWithUserDTO,
    BlockDTO,
    BlockWithUserDTO,
    MessageDTO,
)
from .db_manager import DatabaseManager


def _user_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        username=user.username,
        email=user.email,
        avatar=user.avatar,
        created_at=user.created_at
    )


def _message_dto(msg: Message) -> MessageDTO:
    return MessageDTO(
        id=msg.id,
        sender_id=msg.sender_id,
        receiver_id=msg.receiver_id,
        body=msg.body,
        is_read=msg.is_read,
        is_delivered=msg.is_delivered,
        is_edited=msg.is_edited,
        edited_at=msg.edited_at,
        is_deleted=msg.is_deleted,
        deleted_at=msg.deleted_at,
        created_at=msg.created_at
    )


class UserGateway(UserInterface):
    __slots__ = ("_db_manager", "_logger")

    def __init__(self, db_manager: DatabaseManager, logger: logging.Logger | None = None):
        self._db_manager = db_manager
        self._logger = logger or logging.getLogger(__name__)

    async def create_user(self, username: str, email: str, hashed_password: str, avatar: str) -> UserDTO:
        async with self._db_manager.session() as session:
            try:
                stmt = insert(User).values(
                    username=username,
                    email=email,
                    hashed_password=hashed_password,
                    avatar=avatar,
                    created_at=utcnow()
                ).returning(User)
                result = await session.execute(stmt)
                user = result.scalars().first()
                return _user_dto(user)
            except SQLAlchemyError as e:
                self._logger.error("Error creating user in database: %s", e)
                raise

    async def get_user_by_id(self, user_id: int) -> UserDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = select(User).where(User.id == user_id)
                result = await session.execute(stmt)
                user = result.scalars().first()
                if user:
                    return _user_dto(user)
                else:
                    return None
            except SQLAlchemyError as e:
                self._logger.error("Error getting user by id in database: %s", e)
                raise

    async def get_users_by_ids(self, user_ids: list[int]) -> list[UserDTO]:
        if not user_ids:
            return []

        async with self._db_manager.session() as session:
            try:
                stmt = select(User).where(User.id.in_(user_ids))
                result = await session.execute(stmt)
                return [_user_dto(user) for user in result.scalars().all()]
            except SQLAlchemyError as e:
                self._logger.error("Error getting users by ids in database: %s", e)
                raise

    async def get_user_by_username(self, username: str) -> UserDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = select(User).where(func.lower(User.username) == username.lower())
                result = await session.execute(stmt)
                user = result.scalars().first()
                return _user_dto(user) if user else None
            except SQLAlchemyError as e:
                self._logger.error("Error getting user by username in database: %s", e)
                raise

    async def get_user_by_email(self, email: str) -> UserDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = select(User).where(func.lower(User.email) == email.lower())
                result = await session.execute(stmt)
                user = result.scalars().first()
                return _user_dto(user) if user else None
            except SQLAlchemyError as e:
                self._logger.error("Error getting user by email in database: %s", e)
                raise

    async def get_credentials_by_username(self, username: str) -> UserCredentialsDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = select(User).where(func.lower(User.username) == username.lower())
                result = await session.execute(stmt)
                user = result.scalars().first()
                if user is None:
                    return None

                return UserCredentialsDTO(
                    id=user.id,
                    username=user.username,
                    email=user.email,
                    avatar=user.avatar,
                    created_at=user.created_at,
                    hashed_password=user.hashed_password
                )
            except SQLAlchemyError as e:
                self._logger.error("Error getting credentials in database: %s", e)
                raise

    async def get_all_users(self) -> list[UserDTO]:
        async with self._db_manager.session() as session:
            try:
                stmt = select(User).order_by(User.username)
                result = await session.execute(stmt)
                return [_user_dto(user) for user in result.scalars().all()]
            except SQLAlchemyError as e:
                self._logger.error("Error listing users in database: %s", e)
                raise


class ContactGateway(ContactInterface):
    __slots__ = ("_db_manager", "_logger")

    def __init__(self, db_manager: DatabaseManager, logger: logging.Logger | None = None):
        self._db_manager = db_manager
        self._logger = logger or logging.getLogger(__name__)

    async def add_contact(self, owner_id: int, contact_id: int, contact_name: str) -> ContactDTO:
        async with self._db_manager.session() as session:
            try:
                stmt = insert(Contact).values(
                    owner_id=owner_id,
                    contact_id=contact_id,
                    contact_name=contact_name,
                    created_at=utcnow()
                ).returning(Contact)
                result = await session.execute(stmt)
                contact = result.scalars().first()

                return ContactDTO(
                    id=contact.id,
                    owner_id=contact.owner_id,
                    contact_id=contact.contact_id,
                    contact_name=contact.contact_name,
                    created_at=contact.created_at
                )
            except SQLAlchemyError as e:
                self._logger.error("Error adding contact in database: %s", e)
                raise

    async def get_contact(self, owner_id: int, contact_id: int) -> ContactDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = select(Contact).where(
                    Contact.owner_id == owner_id,
                    Contact.contact_id == contact_id
                )
                result = await session.execute(stmt)
                contact = result.scalars().first()

                if contact is None:
                    return None

                return ContactDTO(
                    id=contact.id,
                    owner_id=contact.owner_id,
                    contact_id=contact.contact_id,
                    contact_name=contact.contact_name,
                    created_at=contact.created_at
                )
            except SQLAlchemyError as e:
                self._logger.error("Error getting contact in database: %s", e)
                raise

    async def get_contacts(self, owner_id: int) -> list[ContactWithUserDTO]:
        async with self._db_manager.session() as session:
            try:
                stmt = (
                    select(Contact, User)
                    .outerjoin(User, User.id == Contact.contact_id)
                    .where(Contact.owner_id == owner_id)
                    .order_by(Contact.contact_name)
                )
                result = await session.execute(stmt)

                return [
                    ContactWithUserDTO(
                        id=contact.id,
                        owner_id=contact.owner_id,
                        contact_id=contact.contact_id,
                        contact_name=contact.contact_name,
                        created_at=contact.created_at,
                        contact_username=user.username if user else None,
                        contact_email=user.email if user else None,
                        contact_avatar=user.avatar if user else None
                    ) for contact, user in result.all()
                ]
            except SQLAlchemyError as e:
                self._logger.error("Error getting contacts in database: %s", e)
                raise

    async def delete_contact(self, owner_id: int, contact_row_id: int) -> bool:
        async with self._db_manager.session() as session:
            try:
                stmt = delete(Contact).where(
                    Contact.owner_id == owner_id,
                    Contact.id == contact_row_id
                )
                result = await session.execute(stmt)
                return result.rowcount > 0
            except SQLAlchemyError as e:
                self._logger.error("Error deleting contact in database: %s", e)
                raise

    async def add_block(self, owner_id: int, blocked_id: int) -> BlockDTO:
        async with self._db_manager.session() as session:
            try:
                stmt = insert(Block).values(
                    owner_id=owner_id,
                    blocked_id=blocked_id,
                    created_at=utcnow()
                ).returning(Block)
                result = await session.execute(stmt)
                block = result.scalars().first()

                return BlockDTO(
                    id=block.id,
                    owner_id=block.owner_id,
                    blocked_id=block.blocked_id,
                    created_at=block.created_at
                )
            except SQLAlchemyError as e:
                self._logger.error("Error adding block in database: %s", e)
                raise

    async def get_block(self, owner_id: int, blocked_id: int) -> BlockDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = select(Block).where(
                    Block.owner_id == owner_id,
                    Block.blocked_id == blocked_id
                )
                result = await session.execute(stmt)
                block = result.scalars().first()

                if block is None:
                    return None

                return BlockDTO(
                    id=block.id,
                    owner_id=block.owner_id,
                    blocked_id=block.blocked_id,
                    created_at=block.created_at
                )
            except SQLAlchemyError as e:
                self._logger.error("Error getting block in database: %s", e)
                raise

    async def get_blocks(self, owner_id: int) -> list[BlockWithUserDTO]:
        async with self._db_manager.session() as session:
            try:
                stmt = (
                    select(Block, User)
                    .outerjoin(User, User.id == Block.blocked_id)
                    .where(Block.owner_id == owner_id)
                    .order_by(Block.created_at)
                )
                result = await session.execute(stmt)

                return [
                    BlockWithUserDTO(
                        id=block.id,
                        owner_id=block.owner_id,
                        blocked_id=block.blocked_id,
                        created_at=block.created_at,
                        blocked_username=user.username if user else None,
                        blocked_email=user.email if user else None,
                        blocked_avatar=user.avatar if user else None
                    ) for block, user in result.all()
                ]
            except SQLAlchemyError as e:
                self._logger.error("Error getting blocks in database: %s", e)
                raise

    async def delete_block(self, owner_id: int, blocked_id: int) -> bool:
        async with self._db_manager.session() as session:
            try:
                stmt = delete(Block).where(
                    Block.owner_id == owner_id,
                    Block.blocked_id == blocked_id
                )
                result = await session.execute(stmt)
                return result.rowcount > 0
            except SQLAlchemyError as e:
                self._logger.error("Error deleting block in database: %s", e)
                raise


class MessageGateway(MessageInterface):
    __slots__ = ("_db_manager", "_logger")

    def __init__(self, db_manager: DatabaseManager, logger: logging.Logger | None = None):
        self._db_manager = db_manager
        self._logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _visible_to(user_id: int):
        return ~exists().where(
            HiddenMessage.message_id == Message.id,
            HiddenMessage.user_id == user_id
        )

    async def create_message(self, sender_id: int, receiver_id: int, body: str) -> MessageDTO:
        async with self._db_manager.session() as session:
            try:
                stmt = insert(Message).values(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    body=body,
                    created_at=utcnow()
                ).returning(Message)
                result = await session.execute(stmt)
                return _message_dto(result.scalars().first())
            except SQLAlchemyError as e:
                self._logger.error("Error creating message in database: %s", e)
                raise

    async def get_message_by_id(self, message_id: int) -> MessageDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = select(Message).where(Message.id == message_id)
                result = await session.execute(stmt)
                msg = result.scalars().first()
                return _message_dto(msg) if msg else None
            except SQLAlchemyError as e:
                self._logger.error("Error getting message by ID in database: %s", e)
                raise

    async def update_message_body(self, message_id: int, body: str) -> MessageDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = update(Message).where(
                    Message.id == message_id
                ).values(
                    body=body,
                    is_edited=True,
                    edited_at=utcnow()
                ).returning(Message)
                result = await session.execute(stmt)
                msg = result.scalars().first()
                return _message_dto(msg) if msg else None
            except SQLAlchemyError as e:
                self._logger.error("Error editing message in database: %s", e)
                raise

    async def mark_as_deleted(self, message_id: int, tombstone: str) -> MessageDTO | None:
        async with self._db_manager.session() as session:
            try:
                stmt = update(Message).where(
                    Message.id == message_id
                ).values(
                    body=tombstone,
                    is_deleted=True,
                    deleted_at=utcnow()
                ).returning(Message)
                result = await session.execute(stmt)
                msg = result.scalars().first()
                return _message_dto(msg) if msg else None
            except SQLAlchemyError as e:
                self._logger.error("Error deleting message in database: %s", e)
                raise

    async def hide_message(self, message_id: int, user_id: int) -> bool:
        async with self._db_manager.session() as session:
            try:
                existing = await session.execute(
                    select(HiddenMessage.id).where(
                        HiddenMessage.message_id == message_id,
                        HiddenMessage.user_id == user_id
                    )
                )
                if existing.scalar_one_or_none() is not None:
                    return False

                await session.execute(
                    insert(HiddenMessage).values(
                        message_id=message_id,
                        user_id=user_id,
                        created_at=utcnow()
                    )
                )
                return True
            except SQLAlchemyError as e:
                self._logger.error("Error hiding message in database: %s", e)
                raise

    async def mark_as_delivered(self, message_ids: list[int]) -> int:
        if not message_ids:
            return 0

        async with self._db_manager.session() as session:
            try:
                stmt = update(Message).where(
                    Message.id.in_(message_ids),
                    Message.is_delivered == False
                ).values(is_delivered=True)
                result = await session.execute(stmt)
                return result.rowcount
            except SQLAlchemyError as e:
                self._logger.error("Error marking message delivered in database: %s", e)
                raise

    async def mark_received_as_delivered(self, receiver_id: int, sender_id: int) -> int:
        async with self._db_manager.session() as session:
            try:
                stmt = update(Message).where(
                    Message.sender_id == sender_id,
                    Message.receiver_id == receiver_id,
                    Message.is_delivered == False
                ).values(is_delivered=True)
                result = await session.execute(stmt)
                return result.rowcount
            except SQLAlchemyError as e:
                self._logger.error("Error marking conversation delivered in database: %s", e)
                raise

    async def mark_as_read(self, sender_id: int, receiver_id: int) -> int:
        async with self._db_manager.session() as session:
            try:
                stmt = update(Message).where(
                    Message.sender_id == sender_id,
                    Message.receiver_id == receiver_id,
                    Message.is_read == False
                ).values(is_read=True, is_delivered=True)
                result = await session.execute(stmt)
                return result.rowcount
            except SQLAlchemyError as e:
                self._logger.error("Error marking messages read in database: %s", e)
                raise

    async def get_conversation_history(self, viewer_id: int, other_id: int, limit: int = 50) -> list[MessageDTO]:
        async with self._db_manager.session() as session:
            try:
                stmt = select(Message).where(
                    or_(
                        and_(
                            Message.sender_id == viewer_id,
                            Message.receiver_id == other_id
                        ),
                        and_(
                            Message.sender_id == other_id,
                            Message.receiver_id == viewer_id
                        )
                    ),
                    self._visible_to(viewer_id)
                ).order_by(
                    Message.created_at.desc(),
                    Message.id.desc()
                ).limit(limit)
                result = await session.execute(stmt)
                messages = result.scalars().all()

                # newest `limit` were selected, the transcript reads oldest first
                return [_message_dto(m) for m in reversed(messages)]
            except SQLAlchemyError as e:
                self._logger.error("Error getting conversation history in database: %s", e)
                raise

    async def get_unread_counts(self, receiver_id: int) -> dict[int, int]:
        async with self._db_manager.session() as session:
            try:
                stmt = select(
                    Message.sender_id,
                    func.count(Message.id)
                ).where(
                    Message.receiver_id == receiver_id,
                    Message.is_read == False,
                    self._visible_to(receiver_id)
                ).group_by(Message.sender_id)
                result = await session.execute(stmt)
                return {sender_id: count for sender_id, count in result.all()}
            except SQLAlchemyError as e:
                self._logger.error("Error counting unread messages in database: %s", e)
                raise

    async def get_messages_for_user(self, user_id: int) -> list[MessageDTO]:
        async with self._db_manager.session() as session:
            try:
                stmt = select(Message).where(
                    or_(
                        Message.sender_id == user_id,
                        Message.receiver_id == user_id
                    ),
                    self._visible_to(user_id)
                ).order_by(Message.created_at, Message.id)
                result = await session.execute(stmt)
                return [_message_dto(m) for m in result.scalars().all()]
            except SQLAlchemyError as e:
                self._logger.error("Error getting messages for user in database: %s", e)
                raise
