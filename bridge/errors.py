from __future__ import annotations


class BridgeError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(BridgeError):
    """The caller sent something it can fix (missing or undecodable image)."""

    status_code = 400


class AuthError(BridgeError):
    status_code = 401


class UpstreamError(BridgeError):
    """The model call failed or produced nothing usable."""

    status_code = 500


class ModelOutputError(UpstreamError):
    """The model answered, but no JSON object could be recovered from it."""


class ProcessingError(BridgeError):
    status_code = 500
