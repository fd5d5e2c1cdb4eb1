"""Manifest builders, cluster pollers and IP pool consistency checks for
end-to-end tests of an IP address management plugin on Kubernetes."""

__version__ = "0.1.0"

__all__ = [
    "clientinfo",
    "entities",
    "poolconsistency",
    "retrievers",
    "testenvironment",
    "util",
    "waiters",
]