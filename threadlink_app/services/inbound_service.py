# threadlink_app/services/inbound_service.py
# -*- coding: utf-8 -*-
"""
Chatwoot -> Slack relay.

An incoming customer message becomes a Slack post. The first post of a
conversation starts a thread and is recorded in the forward mapping; later
posts are replies to that thread. Every successful post refreshes the reverse
mapping used by the outbound relay.

Known limitation: the forward lookup, the Slack post and the forward write are
not atomic. Two near-simultaneous first messages for the same conversation can
both start a thread. The forward write is SET NX, so the first thread recorded
stays the conversation's thread; the other thread keeps its reverse entry and
replies typed there still reach the conversation.
"""
import logging
from typing import Any, Dict, Optional

from flask import current_app

from . import chatwoot_service, slack_service
from .mapping_store import MappingStore, MappingStoreError, get_mapping_store
from ..models.correlation import ConversationRef, ThreadRef
from ..utils import channel_resolution

logger = logging.getLogger(__name__)

# Outcomes, returned to the route for logging and used by tests.
IGNORED_EVENT = "ignored_event"
IGNORED_EMPTY = "ignored_empty"
NO_CONVERSATION = "no_conversation"
NO_CHANNEL = "no_channel"
POST_FAILED = "post_failed"
STORE_ERROR = "store_error"
POSTED_NEW_THREAD = "posted_new_thread"
POSTED_REPLY = "posted_reply"

DEFAULT_SENDER_NAME = "Customer"


def _is_incoming_message(payload: Dict[str, Any]) -> bool:
    if payload.get('event') != 'message_created':
        return False
    message_type = payload.get('message_type')
    # Chatwoot sends the enum name; older payloads used its integer value.
    return message_type == 'incoming' or message_type == 0


def build_conversation_ref(payload: Dict[str, Any], channel: Optional[str] = None) -> Optional[ConversationRef]:
    conversation = payload.get('conversation') if isinstance(payload.get('conversation'), dict) else {}
    account = payload.get('account') if isinstance(payload.get('account'), dict) else {}

    conversation_id = conversation.get('id')
    if conversation_id is None:
        conversation_id = payload.get('conversation_id')
    if conversation_id is None:
        return None

    account_id = account.get('id')
    if account_id is None:
        account_id = conversation.get('account_id')

    folder_id = payload.get('folder_id')
    if folder_id is None:
        folder_id = conversation.get('folder_id')

    try:
        return ConversationRef(
            account_id=account_id,
            conversation_id=conversation_id,
            folder_id=folder_id,
            channel=channel,
        )
    except ValueError as e:
        logger.warning(f"Could not build conversation reference from webhook: {e}")
        return None


def resolve_channel(payload: Dict[str, Any], ref: ConversationRef) -> Optional[str]:
    """
    Picks the Slack channel for a conversation.

    Order: channel attribute on the event; the same attribute on the
    conversation detail fetched once from Chatwoot (covers attributes set just
    after the first message webhook fired); the inbox's static default.
    Returns None when the conversation is unconfigured.
    """
    config = current_app.config
    attribute_key = config.get('CHANNEL_ATTRIBUTE_KEY', 'slack_channel')
    inbox_map = config.get('INBOX_CHANNEL_MAP') or {}

    channel = channel_resolution.channel_from_attributes(payload, attribute_key)
    if channel:
        return channel

    inbox_id = channel_resolution.inbox_id_from(payload)

    if config.get('CHANNEL_RECOVERY_FETCH', True):
        logger.info(
            f"Channel attribute '{attribute_key}' missing from webhook for conv {ref.conversation_id}. "
            f"Fetching conversation detail."
        )
        detail = chatwoot_service.get_conversation(ref.conversation_id, ref.account_id)
        if detail:
            channel = channel_resolution.channel_from_attributes(detail, attribute_key)
            if channel:
                logger.info(f"Recovered channel {channel} for conv {ref.conversation_id} from conversation detail.")
                return channel
            inbox_id = inbox_id or channel_resolution.inbox_id_from(detail)

    return channel_resolution.channel_from_inbox(inbox_id, inbox_map)


def _compose_text(payload: Dict[str, Any], content: str, is_new_thread: bool) -> str:
    sender = payload.get('sender') if isinstance(payload.get('sender'), dict) else {}
    sender_name = (sender.get('name') or '').strip() or DEFAULT_SENDER_NAME
    text = f"*{sender_name}*: {content}"
    marker = current_app.config.get('NEW_THREAD_MARKER') or ''
    if is_new_thread and marker:
        text = f"{marker} {text}"
    return text


def _record_post(store: MappingStore, ref: ConversationRef, requested_channel: str,
                 result: Dict[str, Any], existing_thread_ts: Optional[str]) -> None:
    if existing_thread_ts:
        thread_ts = result.get('thread_ts') or existing_thread_ts
    else:
        thread_ts = result['ts']
        store.store_thread_ts(ref.conversation_id, thread_ts, ref.folder_id)

    # Slack events carry channel ids; the configured channel may be a name.
    channels = [requested_channel]
    reported_channel = result.get('channel')
    if reported_channel and reported_channel != requested_channel:
        channels.append(reported_channel)

    for channel in channels:
        store.store_conversation_ref(ThreadRef(channel=channel, thread_ts=thread_ts), ref)


def relay_support_event(payload: Dict[str, Any]) -> str:
    """
    Handles one Chatwoot webhook payload. Never raises for expected conditions;
    returns an outcome string instead.
    """
    if not isinstance(payload, dict) or not _is_incoming_message(payload):
        logger.debug(f"Skipping Chatwoot event '{payload.get('event') if isinstance(payload, dict) else None}'.")
        return IGNORED_EVENT

    content = payload.get('content')
    if not isinstance(content, str) or not content.strip():
        logger.info("No content in Chatwoot webhook payload. Skipping.")
        return IGNORED_EMPTY

    ref = build_conversation_ref(payload)
    if ref is None:
        logger.warning("Chatwoot message_created webhook without a conversation id. Skipping.")
        return NO_CONVERSATION

    channel = resolve_channel(payload, ref)
    if not channel:
        logger.warning(f"No Slack channel configured for conv {ref.conversation_id}. Message not relayed.")
        return NO_CHANNEL
    ref = ref.model_copy(update={'channel': channel})

    log_ctx = {"conversation_id": ref.conversation_id, "channel": channel}
    store = get_mapping_store()

    try:
        existing_thread_ts = store.get_thread_ts(ref.conversation_id, ref.folder_id)
    except MappingStoreError as e:
        logger.error(f"Mapping store unavailable for conv {ref.conversation_id}: {e}", extra=log_ctx)
        return STORE_ERROR

    text = _compose_text(payload, content, is_new_thread=existing_thread_ts is None)
    result = slack_service.post_message(channel, text, thread_ts=existing_thread_ts)
    if result is None:
        logger.error(f"Slack post failed for conv {ref.conversation_id}.", extra=log_ctx)
        return POST_FAILED

    try:
        _record_post(store, ref, channel, result, existing_thread_ts)
    except MappingStoreError as e:
        logger.error(
            f"Posted to Slack (ts={result['ts']}) but could not record mapping for conv {ref.conversation_id}: {e}",
            extra=log_ctx,
        )
        return STORE_ERROR

    if existing_thread_ts:
        logger.info(f"Posted reply for conv {ref.conversation_id} in thread {existing_thread_ts}.",
                    extra={**log_ctx, "thread_ts": existing_thread_ts})
        return POSTED_REPLY

    logger.info(f"Started Slack thread {result['ts']} for conv {ref.conversation_id}.",
                extra={**log_ctx, "thread_ts": result['ts']})
    return POSTED_NEW_THREAD
