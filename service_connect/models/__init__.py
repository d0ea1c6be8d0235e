from service_connect.models.conversation import Conversation, ConversationParticipant
from service_connect.models.listing import Listing
from service_connect.models.message import Message, MessageAttachment
from service_connect.models.user import User

__all__ = [
    "Conversation",
    "ConversationParticipant",
    "Listing",
    "Message",
    "MessageAttachment",
    "User",
]
