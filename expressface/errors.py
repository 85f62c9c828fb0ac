# expressface exceptions


class ExpressFaceError(Exception):
    """Base exception for expressface operations."""
    pass


class ModelUnavailableError(ExpressFaceError):
    """Raised when the face detector backend cannot be initialized."""

    def __init__(self, message: str = "Face detection model unavailable", reason: str = None):
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.reason = reason


class CameraAccessDeniedError(ExpressFaceError):
    """Raised when the camera cannot be opened (permission or device failure)."""

    def __init__(self, device, reason: str = None):
        message = f"Camera access denied: {device}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.device = device


class DetectionCycleError(ExpressFaceError):
    """Raised when a single detection cycle fails. Never fatal to the loop."""
    pass


class InvalidNameError(ExpressFaceError):
    """Raised when enrolling a face with an empty or whitespace-only name."""

    def __init__(self, name):
        super().__init__(f"Invalid face name: {name!r}")
        self.name = name


class StorageCorruptError(ExpressFaceError):
    """Raised when the persisted gallery blob cannot be decoded."""

    def __init__(self, key: str, reason: str = None):
        message = f"Corrupt gallery storage under key {key!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.key = key
