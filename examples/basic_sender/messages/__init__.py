"""Message types sent by the basic sender example."""

from messages.user_details import PhoneNumber, UserDetailsMessage
from messages.user_login import UserLoginMessage

__all__ = ["PhoneNumber", "UserDetailsMessage", "UserLoginMessage"]
