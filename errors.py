"""
Error taxonomy for the device access engine.

Engine code raises these; the HTTP layer turns them into status codes.
"""


class AccessManagerError(Exception):
    """Base class for every engine error."""


class NotFoundError(AccessManagerError):
    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class ValidationError(AccessManagerError):
    pass
