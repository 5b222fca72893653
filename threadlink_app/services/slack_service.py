# threadlink_app/services/slack_service.py
import logging
from typing import Optional, Dict, Any

import requests
from flask import current_app

logger = logging.getLogger(__name__)


def post_message(channel: str, text: str, thread_ts: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Posts a message to Slack via chat.postMessage.

    Args:
        channel: Channel id or name (e.g. "C097BE9AFCK" or "#support").
        text: Message body (Slack mrkdwn).
        thread_ts: When set, the message is posted as a reply in that thread.

    Returns:
        A dict with 'ts' (the post's own timestamp), 'thread_ts' (the thread it
        belongs to, or None for a top-level post) and 'channel' (as reported by
        Slack). None when the call failed; the failure is logged.
    """
    token = current_app.config.get('SLACK_BOT_TOKEN')
    if not token:
        logger.error("SLACK_BOT_TOKEN not configured. Cannot post to Slack.")
        return None

    url = f"{current_app.config['SLACK_API_URL']}/chat.postMessage"
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json; charset=utf-8",
    }
    body = {"channel": channel, "text": text}
    if thread_ts:
        body["thread_ts"] = thread_ts

    try:
        response = requests.post(
            url, json=body, headers=headers, timeout=current_app.config.get('HTTP_TIMEOUT_SECONDS')
        )
        data = response.json()
    except requests.exceptions.JSONDecodeError:
        # Also a RequestException, so it is caught first.
        logger.error(f"Slack returned a non-JSON response (HTTP {response.status_code}) for channel {channel}.")
        return None
    except requests.exceptions.RequestException as e:
        logger.exception(f"ERROR calling Slack chat.postMessage for channel {channel}: {e}")
        return None

    if response.status_code >= 400 or not data.get('ok'):
        logger.error(
            f"Slack API error posting to {channel}: HTTP {response.status_code}, "
            f"error={data.get('error')}, metadata={data.get('response_metadata')}"
        )
        return None

    message = data.get('message') or {}
    ts = message.get('ts') or data.get('ts')
    if not ts:
        logger.error(f"Slack accepted the post to {channel} but returned no ts: {data}")
        return None

    return {
        "ts": ts,
        "thread_ts": message.get('thread_ts'),
        "channel": data.get('channel') or channel,
    }
