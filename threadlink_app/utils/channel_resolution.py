# threadlink_app/utils/channel_resolution.py
import logging
from typing import Any, Dict, Optional, Mapping

logger = logging.getLogger(__name__)


def _attr(source: Any, attribute_key: str) -> Optional[str]:
    """Reads `custom_attributes[attribute_key]` off a Chatwoot object, if present."""
    if not isinstance(source, dict):
        return None
    attributes = source.get('custom_attributes')
    if not isinstance(attributes, dict):
        return None
    value = attributes.get(attribute_key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def channel_from_attributes(payload: Dict[str, Any], attribute_key: str) -> Optional[str]:
    """
    Looks for the per-conversation channel override.

    Chatwoot has carried it on the conversation, on the sender (contact), and on
    the conversation's meta.sender depending on the webhook schema; all three
    are checked in that order. Works on both webhook payloads and conversation
    details fetched from the API.
    """
    conversation = payload.get('conversation') if isinstance(payload.get('conversation'), dict) else None

    candidates = []
    if conversation is not None:
        candidates.append(conversation)
    else:
        # A fetched conversation detail is the conversation itself.
        candidates.append(payload)
    candidates.append(payload.get('sender'))
    meta = (conversation or payload).get('meta')
    if isinstance(meta, dict):
        candidates.append(meta.get('sender'))

    for source in candidates:
        channel = _attr(source, attribute_key)
        if channel:
            return channel
    return None


def inbox_id_from(payload: Dict[str, Any]) -> Optional[str]:
    inbox = payload.get('inbox')
    if isinstance(inbox, dict) and inbox.get('id') is not None:
        return str(inbox['id'])
    if payload.get('inbox_id') is not None:
        return str(payload['inbox_id'])
    conversation = payload.get('conversation')
    if isinstance(conversation, dict) and conversation.get('inbox_id') is not None:
        return str(conversation['inbox_id'])
    return None


def channel_from_inbox(inbox_id: Optional[str], inbox_channel_map: Mapping[str, str]) -> Optional[str]:
    if not inbox_id:
        return None
    return inbox_channel_map.get(str(inbox_id))
