"""
Audit Models for NomadFinance

The finance store and the identity gate never surface sync failures as
UI states; they report them here instead. Each significant action becomes
one AuditEvent, logged locally and optionally appended to the audit sheet.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Identity gate
    IDENTITY_MISSING = "identity_missing"
    ACCOUNT_FOUND = "account_found"
    ACCOUNT_REGISTERED = "account_registered"
    ACCOUNT_SERVICE_FAILED = "account_service_failed"

    # Loading
    DATA_LOADED = "data_loaded"
    DATA_LOAD_FAILED = "data_load_failed"
    ROW_SKIPPED = "row_skipped"
    SETTINGS_CREATED = "settings_created"
    SETTINGS_MIGRATED = "settings_migrated"

    # Mutations
    RECORD_CREATED = "record_created"
    RECORD_CREATE_FAILED = "record_create_failed"
    RECORD_DELETED = "record_deleted"
    RECORD_DELETE_FAILED = "record_delete_failed"
    SETTINGS_UPDATED = "settings_updated"
    SETTINGS_UPDATE_FAILED = "settings_update_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Whose data, and which record
    user_id: Optional[str] = None
    collection: Optional[str] = Field(
        default=None,
        description="expenses, incomes, assets, settings or users"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "collection": self.collection,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit worksheet.

        Columns: [event_id, timestamp, event_type, severity, user_id,
        collection, entity_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.collection or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("42", "expenses", "tmp-1", "abc")
        await audit_logger.log(event)
    """

    @staticmethod
    def identity_missing(hostname: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_MISSING,
            severity=AuditSeverity.WARNING,
            description="No host container identity available",
            details={"hostname": hostname},
        )

    @staticmethod
    def account_found(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_FOUND,
            user_id=user_id,
            collection="users",
            entity_id=user_id,
            description="Returning user signed in",
        )

    @staticmethod
    def account_registered(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_REGISTERED,
            user_id=user_id,
            collection="users",
            entity_id=user_id,
            description="Account registered",
        )

    @staticmethod
    def account_service_failed(user_id: str, operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_SERVICE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            collection="users",
            entity_id=user_id,
            description=f"Account service failed during {operation}",
            error_message=error_message,
        )

    @staticmethod
    def data_loaded(user_id: str, counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_LOADED,
            user_id=user_id,
            description="Finance data loaded",
            details=counts,
        )

    @staticmethod
    def data_load_failed(user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_LOAD_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description="Finance data could not be loaded",
            error_message=error_message,
        )

    @staticmethod
    def row_skipped(user_id: str, collection: str, row_id: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_SKIPPED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            collection=collection,
            entity_id=row_id,
            description="Malformed row skipped on load",
            error_message=error_message,
        )

    @staticmethod
    def settings_created(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_CREATED,
            user_id=user_id,
            collection="settings",
            description="Default settings created",
        )

    @staticmethod
    def settings_migrated(user_id: str, old_rate: str, new_rate: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_MIGRATED,
            user_id=user_id,
            collection="settings",
            description="Legacy exchange rate replaced",
            details={"old_rate": old_rate, "new_rate": new_rate},
        )

    @staticmethod
    def record_created(user_id: str, collection: str, provisional_id: str, service_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            user_id=user_id,
            collection=collection,
            entity_id=service_id,
            description=f"Record created in {collection}",
            details={"provisional_id": provisional_id},
        )

    @staticmethod
    def record_create_failed(user_id: str, collection: str, provisional_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            collection=collection,
            entity_id=provisional_id,
            description=f"Create in {collection} failed, local record rolled back",
            error_message=error_message,
        )

    @staticmethod
    def record_deleted(user_id: str, collection: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            user_id=user_id,
            collection=collection,
            entity_id=record_id,
            description=f"Record deleted from {collection}",
        )

    @staticmethod
    def record_delete_failed(user_id: str, collection: str, record_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            collection=collection,
            entity_id=record_id,
            description=f"Delete from {collection} failed, local copy already removed",
            error_message=error_message,
        )

    @staticmethod
    def settings_updated(user_id: str, changed: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            user_id=user_id,
            collection="settings",
            description="Settings updated",
            details={"changed": changed},
        )

    @staticmethod
    def settings_update_failed(user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            collection="settings",
            description="Settings upsert failed, local change kept",
            error_message=error_message,
        )
