"""
Service layer abstraction.

The service encapsulates business logic for the user directory.  It
is shared by the HTTP and gRPC front‑ends so that normalisation,
validation and error reporting behave identically on both.
"""
