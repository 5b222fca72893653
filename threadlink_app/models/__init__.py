from .correlation import ConversationRef, ThreadRef, decode_conversation_ref, forward_key, reverse_key
from .slack_event import EventKind, SlackMessageEvent

__all__ = [
    "ConversationRef",
    "ThreadRef",
    "decode_conversation_ref",
    "forward_key",
    "reverse_key",
    "EventKind",
    "SlackMessageEvent",
]
