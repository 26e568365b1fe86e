class ChatError(Exception):
    """
    Base class for failures reported back to the originating connection.
    Attributes:
        kind: Stable error name sent to clients in the `error` event
        message: Human-readable description
    """
    kind: str = "ChatError"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"kind": self.kind, "error": self.message}


class ValidationError(ChatError):
    kind = "ValidationError"
    default_message = "Invalid request"


class DuplicateUsername(ChatError):
    kind = "DuplicateUsername"
    default_message = "Username already exists"


class DuplicateEmail(ChatError):
    kind = "DuplicateEmail"
    default_message = "Email already exists"


class InvalidCredentials(ChatError):
    kind = "InvalidCredentials"
    default_message = "Invalid credentials"


class InvalidToken(ChatError):
    kind = "InvalidToken"
    default_message = "Invalid token"


class NotAuthenticated(ChatError):
    kind = "NotAuthenticated"
    default_message = "Not authenticated"


class MessageNotFound(ChatError):
    kind = "MessageNotFound"
    default_message = "Message not found"


class NotAuthorized(ChatError):
    kind = "NotAuthorized"
    default_message = "Not authorized"


class ContactNotFound(ChatError):
    kind = "ContactNotFound"
    default_message = "Contact not found"


class AlreadyBlocked(ChatError):
    kind = "AlreadyBlocked"
    default_message = "User already blocked"


class AlreadyContact(ChatError):
    kind = "AlreadyContact"
    default_message = "Contact already exists"
