"""
Indexer gateway implementations.

Available gateways:
- HttpIndexer: Angor indexer REST API (Esplora-compatible transaction endpoints)
"""

from angorspend.backends.base import IndexerGateway
from angorspend.backends.indexer import HttpIndexer

__all__ = [
    "HttpIndexer",
    "IndexerGateway",
]
