"""Exception taxonomy for VerseCue.

Only resource-acquisition errors reach the session caller. Everything else is
contained inside a single detection or enrichment attempt and logged.
"""


class VerseCueError(Exception):
    """Base exception for all VerseCue errors."""
    pass


class ValidationError(VerseCueError):
    """Raised when a reference falls outside the catalog (unknown book, bad chapter or verse)."""

    def __init__(self, reference: str, reason: str = ""):
        message = f"Invalid scripture reference: {reference}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.reference = reference
        self.reason = reason


class ClassifierUnavailable(VerseCueError):
    """Raised when the contextual classifier cannot be reached or its reply cannot be parsed."""

    def __init__(self, provider: str, reason: str = ""):
        message = f"Contextual classifier '{provider}' unavailable"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.provider = provider
        self.reason = reason


class EnrichmentUnavailable(VerseCueError):
    """Raised when a verse-text lookup fails (network or backend error)."""

    def __init__(self, reference: str, reason: str = ""):
        message = f"Verse text lookup failed for {reference}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.reference = reference
        self.reason = reason


class ResourceAcquisitionError(VerseCueError):
    """Raised when a capture session cannot acquire its audio input or recognizer."""

    kind = "unavailable"

    def __init__(self, resource: str, reason: str = ""):
        message = f"Could not acquire {resource}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.resource = resource
        self.reason = reason


class PermissionDeniedError(ResourceAcquisitionError):
    """The user or the host refused access to the input device."""
    kind = "permission_denied"


class UnsupportedEnvironmentError(ResourceAcquisitionError):
    """Speech recognition or audio capture is not available in this environment."""
    kind = "unsupported"


class DeviceUnavailableError(ResourceAcquisitionError):
    """The selected device does not exist or is busy."""
    kind = "device_unavailable"


class TransientRecognizerError(VerseCueError):
    """Recoverable recognizer condition such as no speech detected. Never changes session state."""

    def __init__(self, code: str):
        super().__init__(f"Transient recognizer condition: {code}")
        self.code = code


class RecognizerError(VerseCueError):
    """Non-fatal recognizer failure surfaced to the client while the session stays active."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or f"Recognizer error: {code}")
        self.code = code


class InvalidTransitionError(VerseCueError):
    """Raised when a capture session transition is not legal from the current state."""

    def __init__(self, action: str, state: str):
        super().__init__(f"Cannot {action} while session is {state}")
        self.action = action
        self.state = state
