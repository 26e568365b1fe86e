import logging

from sqlalchemy.exc import IntegrityError

from relaychat.core.dto import ContactWithUserDTO, BlockDTO, BlockWithUserDTO
from relaychat.core.exceptions import (
    ValidationError,
    ContactNotFound,
    AlreadyContact,
    AlreadyBlocked,
)
from relaychat.core.interfaces import UserInterface, ContactInterface


class ContactService:
    """
    Address book and block list of a user. Both relations are directional:
    A -> B implies nothing about B -> A.
    """
    def __init__(
            self,
            user_gateway: UserInterface,
            contact_gateway: ContactInterface,
            logger: logging.Logger | None = None
    ):
        self.user_gateway = user_gateway
        self.contact_gateway = contact_gateway
        self.logger = logger or logging.getLogger(__name__)

    async def add_contact(self, owner_id: int, contact_email: str, contact_name: str | None = None) -> ContactWithUserDTO:
        if not contact_email:
            raise ValidationError("Contact email required")

        target = await self.user_gateway.get_user_by_email(contact_email.strip())
        if target is None:
            raise ContactNotFound("User with this email not found")

        if target.id == owner_id:
            raise ValidationError("Cannot add yourself as a contact")

        if await self.contact_gateway.get_contact(owner_id, target.id):
            raise AlreadyContact()

        try:
            contact = await self.contact_gateway.add_contact(
                owner_id=owner_id,
                contact_id=target.id,
                contact_name=(contact_name or "").strip() or target.username
            )
        except IntegrityError:
            # a concurrent request added it first
            raise AlreadyContact()
        self.logger.info("User %s added contact %s", owner_id, target.id)

        return ContactWithUserDTO(
            **contact.model_dump(),
            contact_username=target.username,
            contact_email=target.email,
            contact_avatar=target.avatar
        )

    async def list_contacts(self, owner_id: int) -> list[ContactWithUserDTO]:
        return await self.contact_gateway.get_contacts(owner_id)

    async def delete_contact(self, owner_id: int, contact_row_id: int) -> None:
        if not await self.contact_gateway.delete_contact(owner_id, contact_row_id):
            raise ContactNotFound()

    async def block(self, owner_id: int, blocked_id: int) -> BlockDTO:
        if blocked_id == owner_id:
            raise ValidationError("Cannot block yourself")

        if await self.user_gateway.get_user_by_id(blocked_id) is None:
            raise ValidationError("User not found")

        if await self.contact_gateway.get_block(owner_id, blocked_id):
            raise AlreadyBlocked()

        try:
            block = await self.contact_gateway.add_block(owner_id, blocked_id)
        except IntegrityError:
            raise AlreadyBlocked()
        self.logger.info("User %s blocked %s", owner_id, blocked_id)
        return block

    async def unblock(self, owner_id: int, blocked_id: int) -> None:
        await self.contact_gateway.delete_block(owner_id, blocked_id)

    async def list_blocked(self, owner_id: int) -> list[BlockWithUserDTO]:
        return await self.contact_gateway.get_blocks(owner_id)

    async def is_blocked(self, owner_id: int, other_id: int) -> bool:
        """ True if owner has blocked other """
        return await self.contact_gateway.get_block(owner_id, other_id) is not None
