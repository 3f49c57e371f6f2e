"""Core building blocks: store, locking, configuration and logging."""
