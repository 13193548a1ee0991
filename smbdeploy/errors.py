"""
Deployment exceptions

Most failures during a run are recorded on the RunContext instead of being
raised; these types mark the boundaries where raising is the contract
(session primitives, configuration loading, the build step).
"""


class DeployError(Exception):
    """Base class for every smbdeploy failure."""
    pass


# ── connection ───────────────────────────────────────────────────────────────

class ServerConnectionError(DeployError):
    """The SMB session could not be established. Always fatal."""
    pass


class ServerUnreachable(ServerConnectionError):
    pass


class AuthenticationFailed(ServerConnectionError):
    pass


class ShareNotFound(ServerConnectionError):
    pass


# ── protocol ─────────────────────────────────────────────────────────────────

class ProtocolError(DeployError):
    """
    Non-success status returned by a file operation on the share.

    `status` carries the NT status code when the server supplied one.
    """

    def __init__(self, message: str, status: int = 0, path: str = ""):
        super().__init__(message)
        self.status = status
        self.path = path


class RemotePathExists(ProtocolError):
    pass


class RemotePathNotFound(ProtocolError):
    pass


class RetryExhausted(ProtocolError):
    pass


# ── local ────────────────────────────────────────────────────────────────────

class LocalIOError(DeployError):
    pass


class IndexingError(DeployError):
    pass


class BuildError(DeployError):
    pass


class ConfigError(DeployError):
    pass
