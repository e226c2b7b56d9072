"""
ASGI entry point.

Used by uvicorn:
    uvicorn server.asgi:app --app-dir backend
"""

from dotenv import load_dotenv

load_dotenv()

# pylint: disable=wrong-import-position
from config import AppConfig
from observability import logger
from server.app import create_app

_config = AppConfig.load_from_env()
logger.configure(enabled=_config.enable_json_logs)

app = create_app(_config)
