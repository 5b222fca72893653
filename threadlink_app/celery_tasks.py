# threadlink_app/celery_tasks.py
import logging
from typing import Dict, Any

from .celery_app import celery_app, FlaskTask
from .services import outbound_service

logger = logging.getLogger(__name__)


# Failed relays are dropped, not retried: a retry could post the same reply twice.
@celery_app.task(
    bind=True,
    base=FlaskTask,
    name='threadlink_app.celery_tasks.relay_slack_message_task',
    max_retries=0,
    ignore_result=True,
)
def relay_slack_message_task(self, slack_event: Dict[str, Any]) -> str:
    task_id = self.request.id
    logger.info(f"Task {task_id}: Relaying Slack message {slack_event.get('ts')} in {slack_event.get('channel')}.")
    try:
        outcome = outbound_service.relay_slack_message(slack_event)
    except Exception as e:
        logger.exception(f"Task {task_id}: Unexpected error relaying Slack message: {e}")
        return "error"
    logger.info(f"Task {task_id}: Relay outcome '{outcome}'.")
    return outcome
