"""Kontour Core Custom Exceptions"""


class KontourError(Exception):
    """Base class for all Kontour application-specific exceptions."""


class KubeconfigError(KontourError):
    """
    Base class for failures while registering, resolving or loading a kubeconfig.

    Every subclass carries a human-readable detail (a selector, a path or the
    underlying library's message) and renders it behind a fixed prefix.
    """

    prefix = "Kubeconfig error"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}")


class KubeconfigNotFoundError(KubeconfigError):
    """The selector is neither a registered name nor an existing file path."""

    prefix = "Kubeconfig not found"


class KubeconfigFileNotFoundError(KubeconfigError):
    """A registered name points at a file that no longer exists."""

    prefix = "File not found"


class InvalidKubeconfigError(KubeconfigError):
    """The kubeconfig document could not be interpreted."""

    prefix = "Invalid kubeconfig content"


class StorageError(KubeconfigError):
    """The kubeconfig registry could not be accessed."""

    prefix = "Storage error"


class ClientCreationError(KubeconfigError):
    """The cluster client library refused to build a client."""

    prefix = "Client creation failed"


class KubeconfigIOError(KubeconfigError):
    """Reading or writing kubeconfig material on disk failed."""

    prefix = "IO error"


class K8sClientError(Exception):
    """Raised when a Kubernetes client API call fails."""
