# backend/core/exceptions.py


class NutriSnapError(Exception):
    """Base class for errors raised by the scan backend."""


class InvalidInput(NutriSnapError):
    """Caller supplied something we cannot accept (bad id, missing upload...)."""


class NotFound(NutriSnapError):
    pass


class ScanNotFound(NotFound):
    def __init__(self, scan_id=None):
        super().__init__(f"scan not found: {scan_id}" if scan_id else "scan not found")
        self.scan_id = scan_id


class ProductNotFound(NotFound):
    def __init__(self, key=None):
        super().__init__(f"product not found: {key}" if key else "product not found")
        self.key = key


class PermissionDenied(NutriSnapError):
    pass


class RecognitionError(NutriSnapError):
    """Text recognition could not produce output for an image."""


class StorageError(NutriSnapError):
    pass


class LookupFailed(NutriSnapError):
    """The external product database answered with an error (not a miss)."""


class InvalidStatusTransition(NutriSnapError):
    def __init__(self, current, target):
        super().__init__(f"invalid scan status transition: {current} -> {target}")
        self.current = current
        self.target = target
