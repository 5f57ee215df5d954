"""Custom exception types for domain and API layers."""


class AppError(Exception):
    """Base app exception."""


class PayloadError(AppError):
    """Webhook body could not be decoded or failed schema validation."""


class VerificationError(AppError):
    """Webhook verification token missing or wrong."""


class StorageError(AppError):
    """Subscriber store read or write failure."""


class CorruptStoreError(StorageError):
    """Store file is not JSON or not an object holding a subscribers list."""
