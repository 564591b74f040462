from .memory_store import InMemoryDocumentStore
from .postgres_store import PostgresDocumentStore
from .service import DatabaseService
from .store import DocumentStore

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "DatabaseService",
]
