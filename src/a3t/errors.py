"""Exception hierarchy for a3t."""


class A3tError(Exception):
    """Base class for every error raised by a3t."""


class ConfigurationError(A3tError):
    """Invalid setup: missing repository URL, bad provider, malformed config.

    Raised at initialization time only. Resolution never raises it.
    """


class BackendError(A3tError):
    """A backend tier failed (network, I/O, malformed data)."""

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend}: {message}")


class GitBackendError(BackendError):
    """Clone, fetch, checkout or path derivation failed for a repository."""

    def __init__(self, message: str):
        super().__init__("git", message)


class SecretWriteNotSupported(A3tError):
    """Provider does not accept writes; a composite chain tries the next one."""
