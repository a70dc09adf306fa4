"""Error taxonomy shared by the services and the HTTP layer.

Each error carries the HTTP status the orchestrator answers with; the body of an
error response is always an empty JSON object.
"""


class VpnKeeperError(Exception):
    """Base error for vpnkeeper."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidArgument(VpnKeeperError):
    """Malformed path segment, request body or pagination cursor."""

    status_code = 400


class NotFound(VpnKeeperError):
    """Unknown email or fingerprint on read."""

    status_code = 404


class Conflict(VpnKeeperError):
    """A uniqueness constraint rejected a plain insert."""

    status_code = 409


class IntegrityViolation(VpnKeeperError):
    """Storage holds data that breaks a structural invariant (e.g. duplicate keys)."""

    status_code = 500


class CollaboratorFailure(VpnKeeperError):
    """The signing, templating or TOTP collaborator failed; never retried."""

    status_code = 500
