# threadlink_app/models/slack_event.py
# -*- coding: utf-8 -*-
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EventKind(str, Enum):
    HANDSHAKE = "handshake"
    BOT_MESSAGE = "bot_message"
    HUMAN_MESSAGE = "human_message"
    IGNORED = "ignored"


# Message subtypes that never carry a new human reply.
IGNORED_SUBTYPES = {
    "message_changed",
    "message_deleted",
    "message_replied",
    "channel_join",
    "channel_leave",
    "channel_topic",
    "channel_purpose",
    "channel_name",
}


class SlackMessageEvent(BaseModel):
    """The inner `event` object of a Slack Events API `event_callback`."""
    model_config = ConfigDict(extra='ignore')

    type: str
    channel: Optional[str] = None
    ts: Optional[str] = None
    thread_ts: Optional[str] = None
    text: Optional[str] = None
    user: Optional[str] = None
    bot_id: Optional[str] = None
    subtype: Optional[str] = None

    @property
    def lookup_ts(self) -> Optional[str]:
        """Thread parent when the message is a reply, else the message itself."""
        return self.thread_ts or self.ts
