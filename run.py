"""Unified entry point for the User Directory servers.

This script launches the HTTP (FastAPI/uvicorn) and gRPC servers
concurrently against one shared in‑memory user store.  It is intended
to be executed from the project root, for example under Docker, where
you only specify a single Python file to run.

Configuration is read from environment variables: ``HTTP_HOST``,
``HTTP_PORT``, ``GRPC_HOST``, ``GRPC_PORT``, ``SHUTDOWN_GRACE_SECONDS``,
``LOG_LEVEL`` and ``LOG_FILE``.  See
``user_directory/app/core/config.py`` for defaults.

Usage:
    python run.py
"""

from user_directory.app.server import run


if __name__ == "__main__":
    run()
