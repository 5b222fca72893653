# threadlink_app/config/config.py
# -*- coding: utf-8 -*-
import os
import json
from dotenv import load_dotenv

# Project root (two levels up from threadlink_app/config/).
project_root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))

# The test suite sets FLASK_ENV=testing; in that case .env.test wins over .env.
if os.environ.get('FLASK_ENV') == 'testing':
    test_dotenv_path = os.path.join(project_root_dir, '.env.test')
    if os.path.exists(test_dotenv_path):
        load_dotenv(dotenv_path=test_dotenv_path, override=True)
        print(f"DEBUG [config.py]: LOADED TEST CONFIG from: {test_dotenv_path}")

basedir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
dotenv_path = os.path.join(basedir, '.env')

if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path, override=False)
    print(f"DEBUG [config.py]: Loaded .env from: {dotenv_path}")


def _parse_channel_map(raw: str) -> dict:
    """Parse INBOX_CHANNEL_MAP ('{"71647": "#support"}') into a str -> str dict."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        print("WARNING [Config]: INBOX_CHANNEL_MAP is not valid JSON. Ignoring it.")
        return {}
    if not isinstance(parsed, dict):
        print("WARNING [Config]: INBOX_CHANNEL_MAP must be a JSON object. Ignoring it.")
        return {}
    return {str(k): str(v) for k, v in parsed.items() if v}


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    basedir = basedir

    # --- Flask App ---
    SECRET_KEY = os.environ.get('SECRET_KEY', 'default-insecure-secret-key')
    FLASK_ENV = os.environ.get('FLASK_ENV', 'production')
    DEBUG = FLASK_ENV == 'development'

    # --- Logging ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    LOG_DIR = os.environ.get('LOG_DIR', os.path.join(basedir, 'logs'))
    LOG_FILE = os.path.join(LOG_DIR, 'app.log')
    LOG_JSON_FILE = os.path.join(LOG_DIR, 'app.json')

    # --- Redis (mapping store) ---
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

    # --- Celery 5+ Configuration ---
    broker_url = os.environ.get('broker_url', REDIS_URL)
    result_backend = os.environ.get('result_backend', REDIS_URL)
    task_serializer = os.environ.get('task_serializer', 'json')
    result_serializer = os.environ.get('result_serializer', 'json')
    accept_content = [os.environ.get('accept_content', 'json')]
    task_always_eager = _as_bool(os.environ.get('task_always_eager', 'false'))
    task_ignore_result = True

    # --- Slack ---
    SLACK_API_URL = os.environ.get('SLACK_API_URL', 'https://slack.com/api').rstrip('/')
    SLACK_BOT_TOKEN = os.environ.get('SLACK_BOT_TOKEN')
    SLACK_SIGNING_SECRET = os.environ.get('SLACK_SIGNING_SECRET')
    SLACK_SIGNATURE_MAX_AGE = int(os.environ.get('SLACK_SIGNATURE_MAX_AGE', 300))
    SLACK_BOT_USER_ID = os.environ.get('SLACK_BOT_USER_ID')

    # --- Chatwoot ---
    CHATWOOT_API_URL = os.environ.get('CHATWOOT_API_URL', 'https://app.chatwoot.com').rstrip('/')
    CHATWOOT_API_TOKEN = os.environ.get('CHATWOOT_API_TOKEN')
    OUTBOUND_MESSAGE_TYPE = os.environ.get('OUTBOUND_MESSAGE_TYPE', 'outgoing').lower()
    if OUTBOUND_MESSAGE_TYPE not in ('incoming', 'outgoing'):
        print(f"WARNING [Config]: Invalid OUTBOUND_MESSAGE_TYPE '{OUTBOUND_MESSAGE_TYPE}'. Defaulting to 'outgoing'.")
        OUTBOUND_MESSAGE_TYPE = 'outgoing'

    # --- Channel routing ---
    CHANNEL_ATTRIBUTE_KEY = os.environ.get('CHANNEL_ATTRIBUTE_KEY', 'slack_channel')
    INBOX_CHANNEL_MAP = _parse_channel_map(os.environ.get('INBOX_CHANNEL_MAP', ''))
    CHANNEL_RECOVERY_FETCH = _as_bool(os.environ.get('CHANNEL_RECOVERY_FETCH', 'true'))
    NEW_THREAD_MARKER = os.environ.get('NEW_THREAD_MARKER', '')

    # --- Correlation ---
    # Account id assumed for reverse entries written before the structured format.
    LEGACY_ACCOUNT_ID = os.environ.get('LEGACY_ACCOUNT_ID', '1')
    IDEMPOTENCY_TTL = int(os.getenv("IDEMPOTENCY_TTL", "300"))

    # --- Outgoing HTTP ---
    # Unset means the requests default (no timeout).
    _timeout_raw = os.environ.get('HTTP_TIMEOUT_SECONDS')
    HTTP_TIMEOUT_SECONDS = float(_timeout_raw) if _timeout_raw else None

    if not SLACK_BOT_TOKEN:
        print("WARNING [Config]: SLACK_BOT_TOKEN is not set. Posts to Slack will fail.")
    if not CHATWOOT_API_TOKEN:
        print("WARNING [Config]: CHATWOOT_API_TOKEN is not set. Relays to Chatwoot will fail.")


# --- Config Sanity Check ---
if __name__ != "__main__":
    print(f"--- Config Initialized ---")
    print(f"ENV: {Config.FLASK_ENV}, DEBUG={Config.DEBUG}")
    print(f"Redis URL: {Config.REDIS_URL}")
    print(f"Celery broker_url: {Config.broker_url}")
    print(f"Slack API URL: {Config.SLACK_API_URL}")
    print(f"Slack signature check: {'Enabled' if Config.SLACK_SIGNING_SECRET else 'Disabled'}")
    print(f"Chatwoot API URL: {Config.CHATWOOT_API_URL}")
    print(f"Channel attribute: '{Config.CHANNEL_ATTRIBUTE_KEY}', inbox defaults: {len(Config.INBOX_CHANNEL_MAP)}")
    print(f"--------------------")
