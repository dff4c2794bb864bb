"""Server-side components: document store and HTTP API."""
from eplq.server.store import DocumentStore, InMemoryDocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
]
