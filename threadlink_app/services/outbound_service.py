# threadlink_app/services/outbound_service.py
# -*- coding: utf-8 -*-
"""Slack -> Chatwoot relay: agent replies in a Slack thread go back to the conversation."""
import hmac
import hashlib
import logging
import time
from typing import Any, Dict, Optional, Tuple

from flask import current_app
from pydantic import ValidationError

from . import chatwoot_service
from .mapping_store import MappingStoreError, get_mapping_store
from ..models.correlation import ThreadRef
from ..models.slack_event import EventKind, IGNORED_SUBTYPES, SlackMessageEvent

logger = logging.getLogger(__name__)

# Relay outcomes.
RELAYED = "relayed"
UNMAPPED = "unmapped"
RELAY_FAILED = "relay_failed"
STORE_ERROR = "store_error"
INVALID_EVENT = "invalid_event"


def verify_slack_signature(raw_body: bytes, timestamp: Optional[str], signature: Optional[str],
                           signing_secret: Optional[str], max_age: int = 300,
                           now: Optional[float] = None) -> bool:
    """Checks Slack's v0 request signature. An unset secret disables the check."""
    if not signing_secret:
        return True
    if not timestamp or not signature:
        return False
    try:
        request_time = int(timestamp)
    except (TypeError, ValueError):
        return False
    now = time.time() if now is None else now
    if abs(now - request_time) > max_age:
        logger.warning(f"Slack request timestamp {timestamp} outside the {max_age}s window.")
        return False

    basestring = b"v0:" + timestamp.encode('utf-8') + b":" + raw_body
    expected = "v0=" + hmac.new(signing_secret.encode('utf-8'), basestring, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def classify_event(body: Dict[str, Any]) -> Tuple[EventKind, Optional[SlackMessageEvent]]:
    """
    Sorts a Slack Events API body into handshake, bot echo, human message or
    something to ignore. Does not touch the mapping store.
    """
    if body.get('type') == 'url_verification':
        return EventKind.HANDSHAKE, None

    raw_event = body.get('event')
    if not isinstance(raw_event, dict):
        return EventKind.IGNORED, None

    try:
        event = SlackMessageEvent.model_validate(raw_event)
    except ValidationError as e:
        logger.warning(f"Unparseable Slack event ignored: {e.errors()}")
        return EventKind.IGNORED, None

    if event.type != 'message':
        return EventKind.IGNORED, event

    bot_user_id = current_app.config.get('SLACK_BOT_USER_ID')
    if event.bot_id or event.subtype == 'bot_message' or (bot_user_id and event.user == bot_user_id):
        return EventKind.BOT_MESSAGE, event

    if event.subtype in IGNORED_SUBTYPES:
        return EventKind.IGNORED, event

    if not event.channel or not event.lookup_ts or not (event.text or '').strip():
        return EventKind.IGNORED, event

    return EventKind.HUMAN_MESSAGE, event


def is_duplicate_delivery(event_id: Optional[str]) -> bool:
    """
    Marks a Slack event id as seen. True when it was already seen within
    IDEMPOTENCY_TTL. A store outage never blocks the relay.
    """
    if not event_id:
        return False
    store = get_mapping_store()
    try:
        first = store.mark_event_seen(event_id, current_app.config.get('IDEMPOTENCY_TTL', 300))
    except MappingStoreError as e:
        logger.error(f"Mapping store error during Slack event de-duplication: {e}")
        return False
    return not first


def relay_slack_message(raw_event: Dict[str, Any]) -> str:
    """Looks up the conversation owning the event's thread and posts the text to it."""
    try:
        event = SlackMessageEvent.model_validate(raw_event)
    except ValidationError as e:
        logger.error(f"Relay received an invalid Slack event: {e.errors()}")
        return INVALID_EVENT

    lookup_ts = event.lookup_ts
    if not event.channel or not lookup_ts:
        return INVALID_EVENT

    log_ctx = {"channel": event.channel, "thread_ts": lookup_ts}
    store = get_mapping_store()
    try:
        ref = store.get_conversation_ref(ThreadRef(channel=event.channel, thread_ts=lookup_ts))
    except MappingStoreError as e:
        logger.error(f"Mapping store unavailable while relaying {event.channel}:{lookup_ts}: {e}", extra=log_ctx)
        return STORE_ERROR

    if ref is None:
        logger.warning(f"No conversation mapping for thread {event.channel}:{lookup_ts}. Not relayed.", extra=log_ctx)
        return UNMAPPED

    log_ctx["conversation_id"] = ref.conversation_id
    if not chatwoot_service.send_message(ref, event.text or ''):
        logger.error(f"Relay to Chatwoot conv {ref.conversation_id} failed; dropped.", extra=log_ctx)
        return RELAY_FAILED

    logger.info(f"Relayed Slack reply {event.ts} to conv {ref.conversation_id}.", extra=log_ctx)
    return RELAYED
