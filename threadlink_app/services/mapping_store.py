# threadlink_app/services/mapping_store.py
import logging
from typing import Optional

from flask import current_app
from redis import Redis
from redis.exceptions import RedisError

from ..extensions import get_redis_client
from ..models.correlation import (
    ConversationRef,
    ThreadRef,
    decode_conversation_ref,
    forward_key,
)

logger = logging.getLogger(__name__)

# Expiring Slack redelivery markers. They end in an event id, never a numeric ts,
# so they cannot be read as a `{channel}:{ts}` reverse entry.
DEDUP_KEY_PREFIX = "threadlink:dedup:slack_event:"


class MappingStoreError(Exception):
    """The mapping store could not be reached or rejected the command."""


class MappingStore:
    """
    Conversation <-> thread correlation kept in Redis.

    Forward entries (`conv:{id}:thread` or `folder:{f}:conv:{id}:thread`) hold the
    Slack thread timestamp and are written once. Reverse entries
    (`{channel}:{ts}`) hold the serialized conversation and are rewritten on
    every successful post. Nothing expires and nothing is deleted.
    """

    def __init__(self, client: Redis, legacy_account_id: Optional[str] = None):
        self.client = client
        self.legacy_account_id = legacy_account_id

    # --- Raw key/value contract ---

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.client.get(key)
        except RedisError as e:
            raise MappingStoreError(f"GET {key} failed: {e}") from e
        if isinstance(value, bytes):
            value = value.decode('utf-8')
        return value

    def set(self, key: str, value: str) -> bool:
        try:
            return bool(self.client.set(key, value))
        except RedisError as e:
            raise MappingStoreError(f"SET {key} failed: {e}") from e

    def set_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Atomic SET NX. True when this call created the key."""
        try:
            return bool(self.client.set(key, value, nx=True, ex=ttl))
        except RedisError as e:
            raise MappingStoreError(f"SET NX {key} failed: {e}") from e

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisError as e:
            logger.error(f"Mapping store ping failed: {e}")
            return False

    # --- Forward mapping: conversation -> thread ---

    def get_thread_ts(self, conversation_id: str, folder_id: Optional[str] = None) -> Optional[str]:
        key = forward_key(conversation_id, folder_id)
        thread_ts = self.get(key)
        if thread_ts is None and folder_id:
            # Entries written before the folder was known live under the bare key.
            thread_ts = self.get(forward_key(conversation_id))
            if thread_ts:
                logger.info(f"Forward mapping for conv {conversation_id} found under folder-less key.")
        return thread_ts or None

    def store_thread_ts(self, conversation_id: str, thread_ts: str, folder_id: Optional[str] = None) -> bool:
        key = forward_key(conversation_id, folder_id)
        created = self.set_if_absent(key, thread_ts)
        if created:
            logger.info(f"Stored forward mapping {key} -> {thread_ts}")
        else:
            existing = self.get(key)
            logger.warning(
                f"Forward mapping {key} already set to {existing}; keeping it and ignoring {thread_ts}."
            )
        return created

    # --- Reverse mapping: channel:ts -> conversation ---

    def store_conversation_ref(self, thread: ThreadRef, ref: ConversationRef) -> None:
        key = thread.reverse_key
        if key is None:
            raise ValueError(f"Cannot map a thread in {thread.channel} without a timestamp.")
        self.set(key, ref.to_store_value())
        logger.debug(f"Stored reverse mapping {key} -> conv {ref.conversation_id}")

    def get_conversation_ref(self, thread: ThreadRef) -> Optional[ConversationRef]:
        key = thread.reverse_key
        if key is None:
            return None
        raw = self.get(key)
        return decode_conversation_ref(raw, self.legacy_account_id)

    # --- Delivery de-duplication (not correlation state) ---

    def mark_event_seen(self, event_id: str, ttl: int) -> bool:
        """True the first time `event_id` is seen within `ttl` seconds."""
        return self.set_if_absent(f"{DEDUP_KEY_PREFIX}{event_id}", "1", ttl=ttl)


def get_mapping_store() -> MappingStore:
    """Build a store bound to the current app's Redis client and legacy account id."""
    return MappingStore(
        get_redis_client(),
        legacy_account_id=current_app.config.get("LEGACY_ACCOUNT_ID"),
    )
