"""
Exception hierarchy for the sync and reconciliation layer

Store failures are split in two: transient (network, timeouts, 5xx) which a
later re-run may fix, and validation failures which will fail again with
the same input.
"""


class StoreSyncError(Exception):
    """Base exception for all application errors."""
    retryable = False

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['retryable'] = self.retryable
        return rv


class TransientStoreError(StoreSyncError):
    """The authoritative store could not be reached or timed out."""
    retryable = True

    def __init__(self, message="Store temporarily unavailable", payload=None):
        super().__init__(message, 503, payload)


class StoreValidationError(StoreSyncError):
    """Malformed input or a constraint violation; retrying will not help."""

    def __init__(self, message, payload=None):
        super().__init__(message, 422, payload)


class NotAuthenticatedError(StoreSyncError):
    """No tenant identity is available for a tenant-scoped operation."""

    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class SyncInProgressError(StoreSyncError):
    """Another sync or reconciliation job is already running for the tenant."""

    def __init__(self, tenant_id):
        super().__init__(f"A sync job is already running for tenant {tenant_id}", 409,
                         {'tenant_id': tenant_id})


class CorruptLocalStateError(StoreSyncError):
    """A local persisted collection could not be decoded."""

    def __init__(self, collection, reason):
        super().__init__(f"Local collection '{collection}' is corrupt: {reason}", 500,
                         {'collection': collection})
