# threadlink_app/services/chatwoot_service.py
import logging
from typing import Optional, Dict, Any

import requests
from flask import current_app

from ..models.correlation import ConversationRef

logger = logging.getLogger(__name__)


def _conversation_url(conversation_id: str, account_id: Optional[str]) -> str:
    base = current_app.config['CHATWOOT_API_URL']
    if account_id:
        return f"{base}/api/v1/accounts/{account_id}/conversations/{conversation_id}"
    return f"{base}/api/v1/conversations/{conversation_id}"


def _headers() -> Optional[Dict[str, str]]:
    token = current_app.config.get('CHATWOOT_API_TOKEN')
    if not token:
        logger.error("CHATWOOT_API_TOKEN not configured. Cannot call Chatwoot.")
        return None
    return {"Content-Type": "application/json", "api_access_token": token}


def get_conversation(conversation_id: str, account_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Fetches the conversation detail (custom attributes, inbox id, sender meta)."""
    headers = _headers()
    if headers is None:
        return None

    url = _conversation_url(conversation_id, account_id)
    try:
        response = requests.get(url, headers=headers, timeout=current_app.config.get('HTTP_TIMEOUT_SECONDS'))
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.JSONDecodeError:
        logger.error(
            f"Chatwoot returned a non-JSON conversation detail (HTTP {response.status_code}) for conv {conversation_id}."
        )
        return None
    except requests.exceptions.RequestException as e:
        logger.error(f"Chatwoot conversation fetch failed for conv {conversation_id}: {e}")
        return None

    if not isinstance(data, dict):
        logger.error(f"Unexpected Chatwoot conversation payload for conv {conversation_id}: {str(data)[:200]}")
        return None
    # Some deployments wrap the detail in a 'payload' envelope.
    if isinstance(data.get('payload'), dict) and 'id' not in data:
        data = data['payload']
    return data


def send_message(ref: ConversationRef, content: str, message_type: Optional[str] = None) -> bool:
    """
    Creates a message on a Chatwoot conversation.

    Returns True when Chatwoot accepted it. Failures are logged, never raised.
    """
    headers = _headers()
    if headers is None:
        return False

    message_type = message_type or current_app.config.get('OUTBOUND_MESSAGE_TYPE', 'outgoing')
    url = f"{_conversation_url(ref.conversation_id, ref.account_id)}/messages"
    body = {"content": content, "message_type": message_type}

    try:
        response = requests.post(
            url, json=body, headers=headers, timeout=current_app.config.get('HTTP_TIMEOUT_SECONDS')
        )
    except requests.exceptions.RequestException as e:
        logger.exception(f"ERROR sending message to Chatwoot conv {ref.conversation_id}: {e}")
        return False

    if not response.ok:
        logger.error(
            f"Chatwoot API error for conv {ref.conversation_id}: HTTP {response.status_code}, "
            f"body={response.text[:500]}"
        )
        return False

    logger.info(f"Relayed {message_type} message to Chatwoot conv {ref.conversation_id} (account {ref.account_id}).")
    return True
