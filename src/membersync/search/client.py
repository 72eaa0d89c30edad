"""OpenSearch REST client implementing the IndexClient protocol.

Only the four calls the sync engine needs are implemented: paged search
with ``search_after``, bulk index, single-document index, and delete.
Requests are not retried here; timeouts come from the HTTP client.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from membersync.config.models import SearchConfig
from membersync.core.errors import SearchIndexError
from membersync.sync.interfaces import IndexRequest, SearchHit
from membersync.sync.models import FlattenedDocument

logger = structlog.get_logger()


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


class OpenSearchIndexClient:
    """Async OpenSearch client.

    Usage::

        async with OpenSearchIndexClient.from_config(config.search) as index:
            hits = await index.search("members", query, 500, [{"date_joinedAt": "asc"}])
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth: tuple[str, str] | None = None,
        timeout: float = 30.0,
        refresh: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.refresh = refresh
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            auth=auth,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_config(
        cls,
        config: SearchConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> OpenSearchIndexClient:
        auth = (config.username, config.password or "") if config.username else None
        return cls(
            config.url,
            auth=auth,
            timeout=config.timeout_sec,
            refresh=config.refresh,
            transport=transport,
        )

    async def __aenter__(self) -> OpenSearchIndexClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def _write_params(self) -> dict[str, str]:
        return {"refresh": "true"} if self.refresh else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        allowed_status: tuple[int, ...] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("index_request_error", method=method, path=path, error=str(e))
            raise SearchIndexError.request_failed(method, path, None, str(e)) from e

        if response.is_error and response.status_code not in allowed_status:
            logger.error(
                "index_request_failed",
                method=method,
                path=path,
                status=response.status_code,
            )
            raise SearchIndexError.request_failed(
                method, path, response.status_code, response.text
            )
        return response

    async def search(
        self,
        index_name: str,
        query: dict[str, Any],
        page_size: int,
        sort: list[dict[str, str]],
        cursor: Any = None,
        projected_fields: list[str] | None = None,
    ) -> list[SearchHit]:
        body: dict[str, Any] = {"query": query, "size": page_size, "sort": sort}
        if cursor is not None:
            body["search_after"] = cursor if isinstance(cursor, list) else [cursor]
        if projected_fields is not None:
            body["_source"] = {"includes": projected_fields}

        response = await self._request("POST", f"/{index_name}/_search", json=body)
        hits = response.json().get("hits", {}).get("hits", [])
        return [SearchHit(id=hit["_id"], source=hit.get("_source") or {}) for hit in hits]

    async def bulk_write(self, index_name: str, requests: Sequence[IndexRequest]) -> None:
        if not requests:
            return

        lines: list[str] = []
        for request in requests:
            lines.append(_dumps({"index": {"_index": index_name, "_id": request.id}}))
            lines.append(_dumps(request.body))
        payload = "\n".join(lines) + "\n"

        response = await self._request(
            "POST",
            "/_bulk",
            content=payload.encode(),
            params=self._write_params,
            headers={"Content-Type": "application/x-ndjson"},
        )
        result = response.json()
        if result.get("errors"):
            failures = [
                {"id": action.get("_id"), "status": action.get("status"), "error": action.get("error")}
                for item in result.get("items", [])
                for action in item.values()
                if action.get("error")
            ]
            logger.error("bulk_write_rejected", index=index_name, failed=len(failures))
            raise SearchIndexError.bulk_item_failed(index_name, failures)
        logger.debug("bulk_write_completed", index=index_name, count=len(requests))

    async def write(self, document_id: str, index_name: str, body: FlattenedDocument) -> None:
        await self._request(
            "PUT",
            f"/{index_name}/_doc/{document_id}",
            content=_dumps(body).encode(),
            params=self._write_params,
            headers={"Content-Type": "application/json"},
        )

    async def delete(self, document_id: str, index_name: str) -> None:
        response = await self._request(
            "DELETE",
            f"/{index_name}/_doc/{document_id}",
            params=self._write_params,
            allowed_status=(404,),
        )
        if response.status_code == 404:
            logger.debug("index_document_missing", index=index_name, document_id=document_id)
