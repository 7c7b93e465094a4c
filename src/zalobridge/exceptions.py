"""Zalo Bridge exception hierarchy.

Every error raised by the browser protocols derives from
``ZaloBridgeError`` and carries the HTTP status the API layer should use.
The recoverable "not logged in" outcome is not an exception; it is
returned as a ``SendResult``.
"""

from __future__ import annotations


class ZaloBridgeError(Exception):
    """Base exception for all Zalo Bridge errors."""

    status_code: int = 500


class InvalidRequestError(ZaloBridgeError):
    """Raised when a caller supplies missing or empty input."""

    status_code = 400


class BrowserLaunchError(ZaloBridgeError):
    """Raised when the headless browser cannot be started."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to launch browser: {reason}")


class SelectorNotFoundError(ZaloBridgeError):
    """Raised when no selector in a cascade matches a required UI element.

    Attributes:
        element: Human-readable name of the missing element.
        selectors: The selectors that were tried, in order.
    """

    def __init__(self, element: str, selectors: list[str] | tuple[str, ...] = ()) -> None:
        self.element = element
        self.selectors = list(selectors)
        super().__init__(f"Could not find the {element}. Selector update required.")


class TargetNotFoundError(ZaloBridgeError):
    """Raised when no conversation or contact matches the requested target."""

    def __init__(self, target: str) -> None:
        self.target = target
        super().__init__(
            f"No conversation matches: {target}. Check the phone number format "
            "(e.g. 0911234567 or +84911234567) and try again."
        )


class QRCodeNotFoundError(ZaloBridgeError):
    """Raised when every QR extraction strategy fails."""

    def __init__(self) -> None:
        super().__init__("No QR code found on the page; the Zalo UI may have changed.")


class MessageSendError(ZaloBridgeError):
    """Raised when typing or submitting the message fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Sending the message failed: {reason}")


class OperationTimeoutError(ZaloBridgeError):
    """Raised when a bounded browser wait expires.

    Attributes:
        operation: What was being waited on.
        timeout_seconds: The bound that was exceeded.
    """

    status_code = 504

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} did not finish within {timeout_seconds:g}s")


class NoSessionError(ZaloBridgeError):
    """Raised when an operation needs a live browser but none is running."""

    status_code = 409

    def __init__(self) -> None:
        super().__init__("No browser session is running. Request a QR code and scan it first.")


class UnauthorizedError(ZaloBridgeError):
    """Raised when a protected endpoint is called without the shared secret."""

    status_code = 401

    def __init__(self) -> None:
        super().__init__("Unauthorized")
