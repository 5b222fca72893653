# threadlink_app/api/slack_routes.py
# -*- coding: utf-8 -*-
import logging

from flask import request, jsonify, current_app

from ..celery_tasks import relay_slack_message_task
from ..models.slack_event import EventKind
from ..services import outbound_service

from . import api_bp

logger = logging.getLogger(__name__)


@api_bp.route('/slack-events', methods=['POST'])
def handle_slack_events():
    """
    Receives Slack Events API callbacks.

    The URL verification handshake is answered with the bare challenge. Human
    messages are handed to a Celery task and acknowledged at once; the relay's
    outcome is never reported back to Slack.
    """
    raw_body = request.get_data()
    if not outbound_service.verify_slack_signature(
        raw_body,
        request.headers.get('X-Slack-Request-Timestamp'),
        request.headers.get('X-Slack-Signature'),
        current_app.config.get('SLACK_SIGNING_SECRET'),
        max_age=current_app.config.get('SLACK_SIGNATURE_MAX_AGE', 300),
    ):
        logger.warning("Slack request with invalid signature rejected.")
        return jsonify({"status": "error", "message": "Invalid signature"}), 401

    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        logger.warning("Slack event with empty or invalid JSON body ignored.")
        return "", 200

    kind, event = outbound_service.classify_event(body)

    if kind is EventKind.HANDSHAKE:
        logger.info("Slack URL verification challenge received.")
        challenge = body.get('challenge') or ''
        return current_app.response_class(str(challenge), status=200, mimetype='text/plain')

    if kind is EventKind.BOT_MESSAGE:
        logger.debug(f"Ignoring bot message {event.ts} in {event.channel}.")
        return "", 200

    if kind is EventKind.IGNORED:
        logger.debug(f"Skipping Slack event: {event.type if event else body.get('type')}")
        return "", 200

    retry_num = request.headers.get('X-Slack-Retry-Num')
    if outbound_service.is_duplicate_delivery(body.get('event_id')):
        logger.info(f"Duplicate Slack delivery {body.get('event_id')} (retry {retry_num}) skipped.")
        return "", 200

    try:
        relay_slack_message_task.delay(event.model_dump())
    except Exception as e:
        logger.critical(f"Failed to enqueue Slack relay for {event.channel}:{event.ts}: {e}", exc_info=True)

    return "", 200
