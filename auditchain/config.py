"""
Runtime configuration from environment variables.

All variables use the AUDITCHAIN_ prefix; see Settings.from_env for the
full list and defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .capture.dispatcher import AuditDispatcher, FailureHandler
from .capture.service import EventCaptureService
from .core.errors import StoreError
from .log.dynamodb_store import DynamoDBAuditStore
from .log.file_store import FileAuditStore
from .log.memory_store import MemoryAuditStore
from .log.store import AuditStore


def _env_int(key: str, default: int) -> int:
    val = os.getenv(key)
    if not val:
        return default
    try:
        parsed = int(val)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _env_float(key: str, default: float) -> float:
    val = os.getenv(key)
    if not val:
        return default
    try:
        parsed = float(val)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


@dataclass
class Settings:
    store_type: str = "file"
    store_path: str = "/var/log/auditchain/audit.log"
    dynamodb_table: str = "AuditLog"
    aws_region: str = "us-east-1"
    dynamodb_endpoint: Optional[str] = None
    max_append_attempts: int = 5
    persist_retries: int = 3
    retry_backoff_seconds: float = 0.05
    default_limit: int = 50
    max_limit: int = 200
    dispatch_queue_size: int = 1000
    log_level: str = "INFO"
    log_format: str = "json"
    metrics_enabled: bool = False
    metrics_port: int = 8080

    @staticmethod
    def from_env() -> "Settings":
        max_limit = _env_int("AUDITCHAIN_MAX_LIMIT", 200)
        return Settings(
            store_type=os.getenv("AUDITCHAIN_STORE_TYPE", "file").lower(),
            store_path=os.getenv("AUDITCHAIN_STORE_PATH", "/var/log/auditchain/audit.log"),
            dynamodb_table=os.getenv("AUDITCHAIN_DYNAMODB_TABLE", "AuditLog"),
            aws_region=os.getenv("AUDITCHAIN_AWS_REGION", "us-east-1"),
            dynamodb_endpoint=os.getenv("AUDITCHAIN_DYNAMODB_ENDPOINT") or None,
            max_append_attempts=_env_int("AUDITCHAIN_MAX_APPEND_ATTEMPTS", 5),
            persist_retries=_env_int("AUDITCHAIN_PERSIST_RETRIES", 3),
            retry_backoff_seconds=_env_float("AUDITCHAIN_RETRY_BACKOFF_SECONDS", 0.05),
            default_limit=min(_env_int("AUDITCHAIN_DEFAULT_LIMIT", 50), max_limit),
            max_limit=max_limit,
            dispatch_queue_size=_env_int("AUDITCHAIN_DISPATCH_QUEUE_SIZE", 1000),
            log_level=os.getenv("AUDITCHAIN_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("AUDITCHAIN_LOG_FORMAT", "json").lower(),
            metrics_enabled=os.getenv("AUDITCHAIN_METRICS_ENABLED", "false").lower() == "true",
            metrics_port=_env_int("AUDITCHAIN_METRICS_PORT", 8080),
        )


def build_store(settings: Settings) -> AuditStore:
    """
    Construct the configured storage backend.

    Raises:
        StoreError: Unknown store type or unreachable backend
    """
    if settings.store_type == "memory":
        return MemoryAuditStore()
    if settings.store_type == "file":
        return FileAuditStore(settings.store_path)
    if settings.store_type == "dynamodb":
        return DynamoDBAuditStore(
            table_name=settings.dynamodb_table,
            endpoint_url=settings.dynamodb_endpoint,
            region=settings.aws_region,
        )
    raise StoreError(f"unknown store type: {settings.store_type}")


def build_service(settings: Settings, store: Optional[AuditStore] = None) -> EventCaptureService:
    """Capture service over store (or the configured backend) with configured retry limits."""
    return EventCaptureService(
        store if store is not None else build_store(settings),
        max_attempts=settings.max_append_attempts,
        persist_retries=settings.persist_retries,
        backoff_seconds=settings.retry_backoff_seconds,
    )


def build_dispatcher(
    settings: Settings,
    service: EventCaptureService,
    on_failure: Optional[FailureHandler] = None,
) -> AuditDispatcher:
    """Started dispatcher in front of service."""
    return AuditDispatcher(
        service, max_queue=settings.dispatch_queue_size, on_failure=on_failure
    ).start()
