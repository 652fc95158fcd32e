from .gateway import PersistenceGateway, RetryingGateway
from .memory_gateway import InMemoryGateway
from .sql_gateway import SQLGateway, create_store_engine

__all__ = [
    "InMemoryGateway",
    "PersistenceGateway",
    "RetryingGateway",
    "SQLGateway",
    "create_store_engine",
]
