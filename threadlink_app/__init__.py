# /threadlink_app/__init__.py
import os
import logging
from logging.config import dictConfig
from flask import Flask
import redis
from .config.config import Config
from .utils.logging_utils import build_logging_config

# --- Logging Configuration ---
log_level_env = os.environ.get('LOG_LEVEL', 'INFO').upper()
log_dir_path = Config.LOG_DIR
os.makedirs(log_dir_path, exist_ok=True)

dictConfig(build_logging_config(log_level_env, log_dir_path, Config.LOG_JSON_FILE))
logger = logging.getLogger(__name__)


def create_app(config_class=Config, redis_client=None):
    """
    Builds the Flask app.

    Raises RuntimeError when the mapping store (Redis) cannot be reached: the
    relay must not accept webhooks it cannot correlate.
    """
    logger.info("--- Creating Flask Application Instance ---")
    app = Flask(__name__)
    app.config.from_object(config_class)

    # --- Mapping store client ---
    if redis_client is None:
        redis_client = redis.Redis.from_url(app.config["REDIS_URL"], decode_responses=True)
        logger.info(f"Redis client initialized using URL: {app.config['REDIS_URL']}")
    app.redis_client = redis_client

    try:
        app.redis_client.ping()
    except redis.exceptions.RedisError as e:
        logger.critical(f"Mapping store unreachable at startup: {e}")
        raise RuntimeError("Mapping store (Redis) is unreachable; refusing to start.") from e

    logger.info(f"Flask Environment: {app.config.get('FLASK_ENV', 'not_set')}")
    logger.info(f"Debug Mode: {app.config.get('DEBUG', False)}")

    # --- BLUEPRINT REGISTRATION ---
    from .api import api_bp as api_module_blueprint
    app.register_blueprint(api_module_blueprint)
    logger.info(f"API Blueprint '{api_module_blueprint.name}' registered under url_prefix: {api_module_blueprint.url_prefix}")

    # --- CELERY CONFIGURATION LINKING ---
    from .celery_app import celery_app as celery_application_instance, CELERY_CONFIG_KEYS
    # Flask's from_object only copies UPPERCASE attributes; Celery 5 keys are lowercase.
    celery_flask_config = {key: getattr(config_class, key) for key in CELERY_CONFIG_KEYS if hasattr(config_class, key)}
    if celery_flask_config:
        celery_application_instance.conf.update(celery_flask_config)
        logger.info(f"Celery instance config updated from Flask app config for keys: {list(celery_flask_config.keys())}")

    logger.info("--- Threadlink Application Initialization Complete ---")
    return app
