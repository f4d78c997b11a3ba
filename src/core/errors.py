# src/core/errors.py — v1
"""Exception hierarchy for the reconciliation engine."""

from __future__ import annotations


class FieldSyncError(Exception):
    """Base class for all fieldsync errors."""


class StorageUnavailableError(FieldSyncError):
    """The key/value backend cannot be used at all."""


class PersistenceFatalError(FieldSyncError):
    """Both the primary and the backup ledger slot failed to write."""

    def __init__(self, manifest_id: int):
        self.manifest_id = manifest_id
        super().__init__(
            f"Could not save scans for manifest {manifest_id}; "
            "your work may be lost. Write down the scanned codes before continuing."
        )


class ManifestAlreadySubmittedError(FieldSyncError):
    """The manifest is already recorded in the submitted registry."""

    def __init__(self, manifest_id: int):
        self.manifest_id = manifest_id
        super().__init__(f"Manifest {manifest_id} was already submitted")


class ManifestTransportError(FieldSyncError):
    """The server could not be reached (offline, DNS, timeout)."""


class ManifestApiError(FieldSyncError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class InvalidTransitionError(FieldSyncError):
    """A submission operation was called from a state that does not allow it."""
