# threadlink_app/celery_app.py
import logging

from celery import Celery, Task
from flask import has_app_context

from .config import Config

logger = logging.getLogger(__name__)

_flask_app = None


def _get_flask_app():
    global _flask_app
    if _flask_app is None:
        from . import create_app
        _flask_app = create_app()
    return _flask_app


class FlaskTask(Task):
    """Runs every task inside a Flask application context."""

    def __call__(self, *args, **kwargs):
        # Eager tasks triggered from a request already have one.
        if has_app_context():
            return self.run(*args, **kwargs)
        with _get_flask_app().app_context():
            return self.run(*args, **kwargs)


CELERY_CONFIG_KEYS = [
    'broker_url',
    'result_backend',
    'task_serializer',
    'result_serializer',
    'accept_content',
    'task_always_eager',
    'task_ignore_result',
]

celery_app = Celery('threadlink_app', include=['threadlink_app.celery_tasks'])
celery_app.conf.update({key: getattr(Config, key) for key in CELERY_CONFIG_KEYS if hasattr(Config, key)})
