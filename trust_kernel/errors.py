"""Error kinds raised by the Trust Kernel.

Each error carries the status code an HTTP layer should answer with, so a
transport adapter can translate errors without knowing the domain rules.
"""


class TrustKernelError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(TrustKernelError):
    """Malformed or missing parameters."""

    status_code = 400


class Unauthorized(TrustKernelError):
    """Credential mismatch."""

    status_code = 401


class Forbidden(TrustKernelError):
    """Authorization or business-rule denial."""

    status_code = 403


class NotFound(TrustKernelError):
    """A referenced wallet, relationship or transfer does not exist."""

    status_code = 404


class Conflict(TrustKernelError):
    """The record was modified concurrently; the update was not applied."""

    status_code = 409
