"""Repository modules - Data access layer"""
from .store import RequestStore, get_request_store
from .memory_store import InMemoryRequestStore

__all__ = [
    "RequestStore",
    "get_request_store",
    "InMemoryRequestStore",
]
