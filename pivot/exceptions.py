"""Exceptions related to pivot."""

__all__ = [
    "PivotException",
    "InputException",
    "UnknownKindError",
    "ContextNotFoundError",
    "CommandException",
    "KustomizeException",
    "KubectlException",
    "FetchException",
    "ParseException",
    "StoreException",
    "StoreExistsError",
    "DecodeException",
    "ApplyException",
    "PushException",
    "AuthFailure",
    "RejectedByRemote",
    "NetworkFailure",
    "TunnelException",
    "ReachabilityTimeout",
    "PushExhausted",
]


class PivotException(Exception):
    """Generic base exception used for this library."""


class InputException(PivotException):
    """Raised when the input files or values are not formatted as expected."""


class UnknownKindError(InputException):
    """Raised when a resource kind has no entry in the kind table."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"No resource mapping for kind '{kind}'")
        self.kind = kind


class ContextNotFoundError(InputException):
    """Raised when a named context is absent from the kubeconfig."""

    def __init__(self, context: str, kubeconfig: str) -> None:
        super().__init__(f"context {context} not found in kubeconfig {kubeconfig}")
        self.context = context
        self.kubeconfig = kubeconfig


class CommandException(PivotException):
    """Raised when there is a failure running a subcommand."""


class KustomizeException(CommandException):
    """Raised when there is a failure running a kustomize command."""


class KubectlException(CommandException):
    """Raised when there is a failure running a kubectl command."""


class FetchException(PivotException):
    """Raised when a remote document or release metadata cannot be fetched."""


class ParseException(FetchException):
    """Raised when fetched release metadata cannot be parsed."""


class StoreException(PivotException):
    """Raised when the manifest store cannot be written."""


class StoreExistsError(StoreException):
    """Raised when initializing a store at a path that already holds one."""


class DecodeException(PivotException):
    """Raised when a rendered document is not a valid kubernetes object."""


class ApplyException(PivotException):
    """Raised when a resource could not be created in the cluster."""

    def __init__(
        self, kind: str, namespace: str | None, name: str, message: str
    ) -> None:
        target = f"{namespace}/{name}" if namespace else name
        super().__init__(f"Failed to create {kind} {target}: {message}")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class PushException(PivotException):
    """Raised when pushing the manifest store to a remote fails."""


class AuthFailure(PushException):
    """Raised when the remote rejects the push credentials."""


class RejectedByRemote(PushException):
    """Raised when the remote refuses the pushed refs."""


class NetworkFailure(PushException):
    """Raised when the remote could not be reached."""


class TunnelException(PivotException):
    """Raised when a port-forward tunnel could not be established or failed."""


class ReachabilityTimeout(PivotException):
    """Raised when a service did not become reachable within its retry budget."""


class PushExhausted(PivotException):
    """Raised when every push attempt within the retry budget failed."""
