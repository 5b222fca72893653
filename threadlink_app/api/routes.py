# threadlink_app/api/routes.py
# -*- coding: utf-8 -*-
import logging

from flask import request, jsonify

from ..services import inbound_service
from ..services.mapping_store import get_mapping_store

from . import api_bp

logger = logging.getLogger(__name__)


@api_bp.route('/chatwoot-webhook', methods=['POST'])
def handle_chatwoot_webhook():
    """
    Receives Chatwoot webhooks and relays incoming customer messages to Slack.

    Always answers 200: Chatwoot redelivers on any other status, which would
    post the same message to Slack again.
    """
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        logger.warning("Chatwoot webhook with empty or invalid JSON body ignored.")
        return jsonify({"status": "ok", "result": inbound_service.IGNORED_EVENT}), 200

    logger.info(
        f"Chatwoot webhook received: event={body.get('event')}, message_type={body.get('message_type')}"
    )
    try:
        outcome = inbound_service.relay_support_event(body)
    except Exception as e:
        logger.exception(f"Unexpected error processing Chatwoot webhook: {e}")
        outcome = "error"

    return jsonify({"status": "ok", "result": outcome}), 200


@api_bp.route('/health', methods=['GET'])
def health_check():
    """Reports whether the mapping store answers."""
    logger.debug("Health check endpoint hit.")
    store_ok = get_mapping_store().ping()
    return jsonify({"status": "ok", "store_connected": store_ok}), 200
