"""Shared error codes and user-facing messages."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
NO_SESSION = "NO_SESSION"
NO_IMAGES = "NO_IMAGES"
CONTEXT_FILE_INVALID = "CONTEXT_FILE_INVALID"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone permission is required.",
    DEVICE_UNAVAILABLE: "No usable audio device was found.",
    NETWORK_ERROR: "Network failed, please reset the session.",
    AUTH_FAILED: "API key is invalid.",
    TRANSPORT_ERROR: "The live session failed.",
    NO_SESSION: "No live session is open.",
    NO_IMAGES: "Error: No image files found.",
    CONTEXT_FILE_INVALID: "Could not parse the context file. Proceeding without context.",
}


class ImageSetError(Exception):
    """Raised when a photo set cannot be loaded."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES.get(code, code))
        self.code = code


def classify_transport_error(exc: BaseException) -> str:
    """Map an SDK/network exception to an error code."""
    low = str(exc).lower()
    if "401" in low or "403" in low or "auth" in low or "api key" in low:
        return AUTH_FAILED
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return NETWORK_ERROR
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR
    return TRANSPORT_ERROR


def classify_capture_error(exc: BaseException) -> str:
    """Map a microphone failure to an error code."""
    low = str(exc).lower()
    if "permission" in low or "denied" in low or "not authorized" in low:
        return PERMISSION_DENIED
    return DEVICE_UNAVAILABLE
