"""Environment settings and process-wide AWS clients for the expiry functions.

Clients are created on first use and reused across warm invocations. Handlers
pass them into the store, dispatcher and notifier instead of those classes
building their own.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config

from expiry_errors import ConfigurationError

logger = logging.getLogger(__name__)

_RETRY_CONFIG = Config(retries={"max_attempts": 3, "mode": "standard"})


@dataclass(frozen=True)
class Settings:
    task_table_name: Optional[str]
    expiry_queue_url: Optional[str]
    sns_topic_arn: Optional[str]
    region: Optional[str] = None
    log_level: str = "INFO"

    def require(self, name: str) -> str:
        value = getattr(self, name)
        if not value:
            raise ConfigurationError(f"Missing required environment variable: {_ENV.get(name, name.upper())}")
        return value


_ENV = {
    "task_table_name": "TASK_TABLE_NAME",
    "expiry_queue_url": "EXPIRY_QUEUE_URL",
    "sns_topic_arn": "SNS_TOPIC_ARN",
}


def load_settings(required=(), environ=None) -> Settings:
    """Read settings from the environment; raise for any name in ``required`` that is unset."""
    env = os.environ if environ is None else environ
    settings = Settings(
        task_table_name=env.get("TASK_TABLE_NAME") or None,
        expiry_queue_url=env.get("EXPIRY_QUEUE_URL") or None,
        sns_topic_arn=env.get("SNS_TOPIC_ARN") or None,
        region=env.get("AWS_REGION") or None,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
    for name in required:
        if not getattr(settings, name):
            raise ConfigurationError(f"Missing required environment variable: {_ENV[name]}")
    return settings


def configure_logging(settings: Settings) -> None:
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        logger.warning(f"Unknown LOG_LEVEL {settings.log_level!r}, using INFO")
        level = logging.INFO
    logging.getLogger().setLevel(level)


_sqs = None
_sns = None
_table = None


def get_sqs_client(settings: Settings):
    global _sqs
    if _sqs is None:
        _sqs = boto3.client("sqs", region_name=settings.region, config=_RETRY_CONFIG)
    return _sqs


def get_sns_client(settings: Settings):
    global _sns
    if _sns is None:
        _sns = boto3.client("sns", region_name=settings.region, config=_RETRY_CONFIG)
    return _sns


def get_task_table(settings: Settings):
    global _table
    if _table is None:
        table_name = settings.require("task_table_name")
        dynamodb = boto3.resource("dynamodb", region_name=settings.region, config=_RETRY_CONFIG)
        _table = dynamodb.Table(table_name)
    return _table


def reset_clients() -> None:
    """Drop cached clients (used by tests)."""
    global _sqs, _sns, _table
    _sqs = _sns = _table = None
