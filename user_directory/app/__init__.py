"""
Application package initializer.

The directory is organised into small pieces: ``core`` holds the
record store, its locking primitive, configuration and logging;
``services`` holds the protocol‑agnostic business logic; ``api`` and
``schemas`` form the HTTP front‑end; ``grpc_api`` forms the gRPC
front‑end.  ``server`` wires both front‑ends to one shared service
instance and ``lifecycle`` runs them.
"""

from .main import create_app  # noqa: F401
