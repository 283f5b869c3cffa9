from .user import User, ROLE_ADMIN, ROLE_CUSTOMER, ROLES
from .feedback import Feedback, RATING_LABELS
from .sms_message import SmsMessage
from .message_template import MessageTemplate

__all__ = [
    "User",
    "ROLE_ADMIN",
    "ROLE_CUSTOMER",
    "ROLES",
    "Feedback",
    "RATING_LABELS",
    "SmsMessage",
    "MessageTemplate",
]
