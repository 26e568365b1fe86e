from fastapi import status, Depends, APIRouter

from dishka import FromDishka
from dishka.integrations.fastapi import inject

import logging

from relaychat.services.contacts import ContactService
from relaychat.services.identity import IdentityService
from ..models.contact_api_models import (
    ContactCreateRequest,
    ContactResponse,
    BlockCreateRequest,
    BlockResponse,
)
from .auth_api import AuthAPI


class ContactAPI:
    """
    Main class for contact-related API endpoints.

    Handles the address book (contacts with local aliases) and the block list.
    Contacts and blocks are directional and belong to the token's user.

    Attributes:
        logger: Logger instance for tracking operations
        auth_api: Authentication API instance for user validation
        contact_router: FastAPI router containing contact endpoints
    """
    def __init__(
            self,
            logger: logging.Logger,
            auth_api: AuthAPI
    ):
        self.logger = logger
        self.auth_api = auth_api

        self._contact_router = APIRouter(tags=["Contacts"])

        self._register_endpoints()

    @property
    def contact_router(self) -> APIRouter:
        return self._contact_router

    def get_router(self) -> APIRouter:
        return self._contact_router

    def _register_endpoints(self):
        @self.contact_router.get("/contacts", response_model=list[ContactResponse])
        @inject
        async def get_contacts(
                identity: FromDishka[IdentityService],
                contacts: FromDishka[ContactService],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            List the current user's contacts.

            Returns:
                Contacts with the target user's current profile
            """
            user_id = await self.auth_api.get_current_user(identity, token)
            return [
                ContactResponse.model_validate(contact)
                for contact in await contacts.list_contacts(user_id)
            ]

        @self.contact_router.post("/contacts", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
        @inject
        async def add_contact(
                request_data: ContactCreateRequest,
                identity: FromDishka[IdentityService],
                contacts: FromDishka[ContactService],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Add a contact by the target's email.

            Args:
                request_data: Target email and optional local alias

            Raises:
                ContactNotFound: No user with this email
                AlreadyContact: The contact already exists
            """
            user_id = await self.auth_api.get_current_user(identity, token)
            contact = await contacts.add_contact(user_id, request_data.contact_email, request_data.contact_name)
            return ContactResponse.model_validate(contact)

        @self.contact_router.delete("/contacts/{contact_id}")
        @inject
        async def delete_contact(
                contact_id: int,
                identity: FromDishka[IdentityService],
                contacts: FromDishka[ContactService],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            user_id = await self.auth_api.get_current_user(identity, token)
            await contacts.delete_contact(user_id, contact_id)
            return {"success": True}

        @self.contact_router.get("/blocks", response_model=list[BlockResponse])
        @inject
        async def get_blocked(
                identity: FromDishka[IdentityService],
                contacts: FromDishka[ContactService],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            user_id = await self.auth_api.get_current_user(identity, token)
            return [
                BlockResponse(
                    id=block.id,
                    blocked_user_id=block.blocked_id,
                    blocked_username=block.blocked_username,
                    blocked_email=block.blocked_email,
                    blocked_avatar=block.blocked_avatar,
                    created_at=block.created_at
                ) for block in await contacts.list_blocked(user_id)
            ]

        @self.contact_router.post("/blocks", status_code=status.HTTP_201_CREATED)
        @inject
        async def block_user(
                request_data: BlockCreateRequest,
                identity: FromDishka[IdentityService],
                contacts: FromDishka[ContactService],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            """
            Block another user. Their messages and typing indicators to the
            current user are rejected while the block exists.
            """
            user_id = await self.auth_api.get_current_user(identity, token)
            block = await contacts.block(user_id, request_data.blocked_user_id)
            return {"success": True, "id": block.id, "blocked_user_id": block.blocked_id}

        @self.contact_router.delete("/blocks/{blocked_id}")
        @inject
        async def unblock_user(
                blocked_id: int,
                identity: FromDishka[IdentityService],
                contacts: FromDishka[ContactService],
                token: str = Depends(self.auth_api.oauth2_scheme)
        ):
            user_id = await self.auth_api.get_current_user(identity, token)
            await contacts.unblock(user_id, blocked_id)
            return {"success": True}
