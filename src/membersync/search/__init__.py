"""Search index client (OpenSearch)."""

from membersync.search.client import OpenSearchIndexClient

__all__ = ["OpenSearchIndexClient"]
