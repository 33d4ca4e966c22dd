"""
Core Exceptions
================

Custom exceptions for the SLA engine.

Library-level code raises these; batch-level code (sweeps, bulk escalation)
catches them per ticket and logs a skip instead of aborting the batch.
"""

from datetime import datetime
from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class InvalidIntervalException(ValidationException):
    """Raised when an elapsed-time calculation gets an end before its start."""

    def __init__(self, start: datetime, end: datetime):
        self.start = start
        self.end = end
        super().__init__(
            f"Interval end {end.isoformat()} is before start {start.isoformat()}",
            {"start": start.isoformat(), "end": end.isoformat()}
        )


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class NotificationException(ExternalServiceException):
    """Exception for notification dispatch failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification Service", message, details)


class AuditException(ExternalServiceException):
    """Exception for audit log write failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Audit Log", message, details)
