from .auth_api import AuthAPI
from .contact_api import ContactAPI
from .message_api import MessageAPI
from .ws_api import SocketAPI
from .errors import register_exception_handlers

__all__ = ["AuthAPI", "ContactAPI", "MessageAPI", "SocketAPI", "register_exception_handlers"]
