"""
Error taxonomy for map operations.

Every failure a user can trigger maps onto one of these classes. The server
layer translates them into HTTP responses; the session layer turns
persistence failures into notices instead of raising.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""


class ScoutMapError(Exception):
    """Base class for all map errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ScoutMapError):
    """Input rejected before any state was touched."""

    status_code = 400


class NotFoundError(ScoutMapError):
    """A marker, workspace, team or category id does not exist."""

    status_code = 404

    def __init__(self, kind: str, entity_id):
        super().__init__(f"{kind.capitalize()} '{entity_id}' not found")
        self.kind = kind
        self.entity_id = entity_id


class ConfirmationRequired(ScoutMapError):
    """A destructive operation was requested without explicit confirmation."""

    status_code = 409


class ImportFormatError(ValidationError):
    """An imported document is not a valid map export."""


class PersistenceError(ScoutMapError):
    """The external store rejected or failed a write."""

    status_code = 502
