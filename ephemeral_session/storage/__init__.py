"""Networked TTL storage for session blobs."""
from .redis import SessionStore

__all__ = ["SessionStore"]
