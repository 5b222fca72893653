# threadlink_app/models/correlation.py
# -*- coding: utf-8 -*-
import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

FORWARD_KEY_TEMPLATE = "conv:{conversation_id}:thread"
FOLDER_FORWARD_KEY_TEMPLATE = "folder:{folder_id}:conv:{conversation_id}:thread"
REVERSE_KEY_TEMPLATE = "{channel}:{thread_ts}"


def _id_to_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError("boolean is not a valid identifier")
    if isinstance(v, (int, str)):
        v = str(v).strip()
        return v or None
    raise ValueError(f"unsupported identifier type: {type(v).__name__}")


class ConversationRef(BaseModel):
    """
    A Chatwoot conversation as stored in the reverse mapping.

    Serialized with the historical camelCase field names so entries written by
    earlier deployments stay readable.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

    account_id: Optional[str] = Field(default=None, alias='accountId')
    conversation_id: str = Field(alias='conversationId')
    folder_id: Optional[str] = Field(default=None, alias='folderId')
    channel: Optional[str] = None

    @field_validator('account_id', 'folder_id', 'channel', mode='before')
    @classmethod
    def _optional_ids(cls, v: Any) -> Optional[str]:
        return _id_to_str(v)

    @field_validator('conversation_id', mode='before')
    @classmethod
    def _required_id(cls, v: Any) -> str:
        value = _id_to_str(v)
        if not value:
            raise ValueError("conversationId is required")
        return value

    def to_store_value(self) -> str:
        return self.model_dump_json(by_alias=True)


class ThreadRef(BaseModel):
    """
    A Slack thread: channel plus the root message timestamp (None until first post).

    Addresses the reverse mapping; the same thread is reachable under its
    channel name and its channel id, each as its own ThreadRef.
    """
    model_config = ConfigDict(frozen=True)

    channel: str
    thread_ts: Optional[str] = None

    @property
    def reverse_key(self) -> Optional[str]:
        if not self.thread_ts:
            return None
        return reverse_key(self.channel, self.thread_ts)


def forward_key(conversation_id: Union[str, int], folder_id: Optional[Union[str, int]] = None) -> str:
    if folder_id not in (None, ""):
        return FOLDER_FORWARD_KEY_TEMPLATE.format(folder_id=folder_id, conversation_id=conversation_id)
    return FORWARD_KEY_TEMPLATE.format(conversation_id=conversation_id)


def reverse_key(channel: str, thread_ts: str) -> str:
    return REVERSE_KEY_TEMPLATE.format(channel=channel, thread_ts=thread_ts)


def decode_conversation_ref(raw: Union[str, bytes, None], legacy_account_id: Optional[str]) -> Optional[ConversationRef]:
    """
    Decodes a reverse-mapping value.

    Structured JSON is tried first. Anything else is read as a legacy value
    whose account is `legacy_account_id`: a JSON scalar (42, "42") gives its
    value as the conversation id, any other text is the conversation id as is.
    Returns None only for an empty value.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8')
    raw = raw.strip()
    if not raw:
        return None

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        parsed = None

    if isinstance(parsed, dict):
        try:
            return ConversationRef.model_validate(parsed)
        except ValidationError:
            pass

    # A JSON scalar ("42" or 42) carries the bare id without its quotes.
    if isinstance(parsed, (str, int)) and not isinstance(parsed, bool) and str(parsed).strip():
        return ConversationRef(account_id=legacy_account_id, conversation_id=parsed)

    return ConversationRef(account_id=legacy_account_id, conversation_id=raw)
