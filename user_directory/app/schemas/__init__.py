"""
Pydantic schema definitions for HTTP payloads.

Schemas are separated from the store's record types to decouple the
JSON representation from the in‑memory data model.
"""
