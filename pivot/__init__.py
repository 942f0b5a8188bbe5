"""
Pivot bootstraps a Kubernetes cluster into a self hosted GitOps state.

A local git repository is assembled from the upstream releases of a fixed
set of operators, the operators and an in-cluster git server are installed,
the repository is pushed into that server, and the CD controller is pointed
at it so the cluster manages itself from then on.
"""

__all__ = [
    "bootstrap",
    "components",
    "store",
    "synthesizer",
    "applier",
    "tunnel",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
