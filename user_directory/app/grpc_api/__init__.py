"""
gRPC transport layer for the user directory.

This package hosts:
- ``messages``: protobuf message classes for ``userdir.v1``.
- ``servicer``: the thin adapter from RPCs to ``UserService``, the
  server factory and a client stub.
"""
