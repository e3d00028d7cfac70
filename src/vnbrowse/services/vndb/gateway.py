"""Catalog query gateway.

Single entry point for every remote read and write. Reads go through the
:class:`ResponseCache`; personal list writes clear the whole personal list
namespace. Statuses are mapped onto the transport error taxonomy here:

- 401/403: :class:`AuthenticationFailure`
- 429, 5xx: :class:`TransportFailure`
- other 4xx: :class:`RejectedRequest`, which call sites with an optional
  request shape recover from once via :func:`run_shape_variants`
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from aiolimiter import AsyncLimiter

from vnbrowse.config.models import ApiSettings
from vnbrowse.core.decoding import (
    ListRecord,
    decode_auth_info,
    decode_catalog_entries,
    decode_identifier_set,
    decode_list_record,
    decode_query_page,
)
from vnbrowse.core.filters import (
    FilterExpression,
    build_filter_expression,
    build_identifier_filter,
    build_sort_parameters,
)
from vnbrowse.core.identifiers import EntityKind, normalize_identifier
from vnbrowse.core.models import AuthInfo, CatalogEntry, QueryDescriptor, QueryPage
from vnbrowse.services.cache import ResponseCache
from vnbrowse.services.vndb.request_shapes import RequestShape, run_shape_variants
from vnbrowse.services.vndb.transport import Transport, TransportResponse
from vnbrowse.shared.constants import (
    DEFAULT_ADD_STATUS,
    STATUS_LABEL_IDS,
    CacheNamespace,
    Endpoint,
    Fields,
    HTTPStatusCodes,
    ListStatus,
    Paging,
)
from vnbrowse.shared.errors import (
    AuthenticationFailure,
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    RejectedRequest,
    TransportFailure,
)
from vnbrowse.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogQuery:
    """Body of a ``POST /<entity>`` read."""

    filters: FilterExpression
    fields: str
    results: int = Paging.SEARCH_PAGE_SIZE
    page: int | None = None
    sort: str | None = None
    reverse: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "filters": self.filters,
            "fields": self.fields,
            "results": self.results,
        }
        if self.page is not None:
            payload["page"] = self.page
        if self.sort is not None:
            payload["sort"] = self.sort
        if self.reverse is not None:
            payload["reverse"] = self.reverse
        return payload


def _personal_list_payload(
    user_id: str,
    fields: str,
    page: int,
    page_size: int,
    filters: FilterExpression | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "user": normalize_identifier(user_id, EntityKind.USER),
        "fields": fields,
        "results": page_size,
        "page": page,
    }
    if filters is not None:
        payload["filters"] = filters
    return payload


class CatalogQueryGateway:
    """Reads and writes against the catalog API.

    Args:
        transport: HTTP transport
        cache: Response cache; a private one is created when omitted
        settings: API settings (rate limit budget)
        limiter: Optional shared rate limiter
        cache_enabled: When False reads always hit the remote
    """

    def __init__(
        self,
        transport: Transport,
        cache: ResponseCache | None = None,
        settings: ApiSettings | None = None,
        limiter: AsyncLimiter | None = None,
        *,
        cache_enabled: bool = True,
    ) -> None:
        self.transport = transport
        self.cache = cache if cache is not None else ResponseCache()
        self.settings = settings if settings is not None else ApiSettings()
        self.limiter = limiter if limiter is not None else AsyncLimiter(
            self.settings.rate_limit_requests,
            self.settings.rate_limit_period,
        )
        self.cache_enabled = cache_enabled

    # =========================================================================
    # Low level
    # =========================================================================

    async def request_json(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        token: str | None = None,
        operation: str = "request",
    ) -> Any:
        """Send one request and return the decoded body of a 2xx response."""
        async with self.limiter:
            response = await self.transport.request(
                method,
                path,
                json_body=body,
                token=token,
            )
        self._raise_for_status(response, method, path, operation)
        return response.payload

    def _raise_for_status(
        self,
        response: TransportResponse,
        method: str,
        path: str,
        operation: str,
    ) -> None:
        status = response.status
        if HTTPStatusCodes.is_success(status):
            return

        context = ErrorContext(
            operation=operation,
            endpoint=path,
            additional_data={"method": method, "status_code": status},
        )
        detail = response.text.strip()

        if HTTPStatusCodes.is_auth_error(status):
            error: InfrastructureError | AuthenticationFailure = AuthenticationFailure(
                f"Credential refused by {path} (HTTP {status})",
                context,
                status_code=status,
            )
        elif status == HTTPStatusCodes.TOO_MANY_REQUESTS:
            error = TransportFailure(
                ErrorCode.API_RATE_LIMIT,
                f"Rate limited on {path}",
                context,
                status_code=status,
            )
        elif HTTPStatusCodes.is_client_error(status):
            # Shape fallbacks recover from these; the caller decides whether to log
            raise RejectedRequest(
                detail or f"{method} {path} rejected",
                status_code=status,
                body=response.text,
                context=context,
            )
        else:
            error = TransportFailure(
                ErrorCode.API_SERVER_ERROR,
                f"{method} {path} failed with HTTP {status}",
                context,
                status_code=status,
            )

        log_operation_error(logger, error, operation=operation)
        raise error

    def _cache_key(self, namespace: str, path: str, body: Any, token: str | None) -> str:
        return self.cache.fingerprint(
            namespace,
            {"path": path, "body": body, "token": token},
        )

    async def cached_json(
        self,
        namespace: str,
        method: str,
        path: str,
        body: Any = None,
        *,
        token: str | None = None,
        operation: str = "read",
    ) -> Any:
        """Cached variant of :meth:`request_json` for idempotent reads."""
        key = self._cache_key(namespace, path, body, token)
        if self.cache_enabled:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        payload = await self.request_json(method, path, body, token=token, operation=operation)
        if self.cache_enabled and payload is not None:
            self.cache.put(key, payload)
        return payload

    async def read(
        self,
        namespace: str,
        path: str,
        query: CatalogQuery | dict[str, Any],
        *,
        token: str | None = None,
        operation: str = "read",
    ) -> QueryPage[Any]:
        """Cached paginated read returning the raw records."""
        body = query.to_payload() if isinstance(query, CatalogQuery) else query
        payload = await self.cached_json(
            namespace,
            "POST",
            path,
            body,
            token=token,
            operation=operation,
        )
        return decode_query_page(payload)

    async def read_variants(
        self,
        namespace: str,
        path: str,
        shapes: Sequence[RequestShape],
        *,
        token: str | None = None,
        operation: str = "read",
        max_attempts: int = Paging.SHAPE_ATTEMPT_CAP,
    ) -> QueryPage[Any]:
        """Paginated read with ordered shape fallback.

        The result is cached under the first shape's payload, so a later
        identical call is served without repeating the rejected attempt.
        """
        key = self._cache_key(namespace, path, shapes[0].payload, token)
        if self.cache_enabled:
            cached = self.cache.get(key)
            if cached is not None:
                return decode_query_page(cached)

        async def send(shape: RequestShape) -> Any:
            return await self.request_json(
                "POST",
                path,
                shape.payload,
                token=token,
                operation=f"{operation}:{shape.name}",
            )

        payload = await run_shape_variants(shapes, send, max_attempts=max_attempts)
        if self.cache_enabled and payload is not None:
            self.cache.put(key, payload)
        return decode_query_page(payload)

    # =========================================================================
    # Titles
    # =========================================================================

    async def query_titles(
        self,
        descriptor: QueryDescriptor,
        page: int = 1,
        page_size: int = Paging.SEARCH_PAGE_SIZE,
        fields: str = Fields.TITLE_LIST,
    ) -> QueryPage[CatalogEntry]:
        """Run a search descriptor and return one decoded page."""
        sort, reverse = build_sort_parameters(descriptor.sort)
        query = CatalogQuery(
            filters=build_filter_expression(descriptor),
            fields=fields,
            results=page_size,
            page=page,
            sort=sort,
            reverse=reverse,
        )
        started = time.perf_counter()
        raw = await self.read(
            CacheNamespace.SEARCH,
            Endpoint.TITLES,
            query,
            operation="query_titles",
        )
        entries = decode_catalog_entries(raw.results)
        log_operation_success(
            logger,
            "query_titles",
            (time.perf_counter() - started) * 1000,
            result_info={"page": page, "count": len(entries), "more": raw.more},
        )
        return QueryPage(results=entries, more=raw.more)

    async def lookup_titles_by_ids(
        self,
        identifiers: Sequence[str],
        fields: str = Fields.TITLE_LIST,
    ) -> tuple[CatalogEntry, ...]:
        """Batch lookup of up to one batch of titles by identifier.

        Raises:
            ValueError: If more identifiers than one batch allows are given.
        """
        ids = list(dict.fromkeys(normalize_identifier(i, EntityKind.TITLE) for i in identifiers))
        if not ids:
            return ()
        if len(ids) > Paging.IDENTIFIER_BATCH_SIZE:
            raise ValueError(
                f"At most {Paging.IDENTIFIER_BATCH_SIZE} identifiers per lookup, got {len(ids)}",
            )
        query = CatalogQuery(
            filters=build_identifier_filter(ids),
            fields=fields,
            results=len(ids),
        )
        raw = await self.read(
            CacheNamespace.LOOKUP,
            Endpoint.TITLES,
            query,
            operation="lookup_titles_by_ids",
        )
        return decode_catalog_entries(raw.results)

    # =========================================================================
    # Authentication
    # =========================================================================

    async def fetch_auth_info(self, token: str) -> AuthInfo:
        """Introspect a token.

        Raises:
            AuthenticationFailure: Token missing or refused.
            InfrastructureError: Malformed introspection response.
        """
        if not token or not token.strip():
            raise AuthenticationFailure(
                "API token is empty",
                ErrorContext(operation="fetch_auth_info", endpoint=Endpoint.AUTH_INFO),
            )
        payload = await self.request_json(
            "GET",
            Endpoint.AUTH_INFO,
            token=token.strip(),
            operation="fetch_auth_info",
        )
        info = decode_auth_info(payload)
        if info is None:
            error = InfrastructureError(
                ErrorCode.API_INVALID_RESPONSE,
                "Token introspection returned no user identifier",
                ErrorContext(operation="fetch_auth_info", endpoint=Endpoint.AUTH_INFO),
            )
            log_operation_error(logger, error)
            raise error
        return info

    # =========================================================================
    # Personal list reads
    # =========================================================================

    async def query_personal_list(
        self,
        token: str,
        user_id: str,
        *,
        fields: str,
        page: int = 1,
        page_size: int = Paging.PERSONAL_LIST_PAGE_SIZE,
        filters: FilterExpression | None = None,
    ) -> QueryPage[Any]:
        """Raw personal list read, cached in the personal list namespace."""
        return await self.read(
            CacheNamespace.PERSONAL_LIST,
            Endpoint.PERSONAL_LIST,
            _personal_list_payload(user_id, fields, page, page_size, filters),
            token=token,
            operation="query_personal_list",
        )

    async def fetch_personal_list_page(
        self,
        token: str,
        user_id: str,
        page: int = 1,
        page_size: int = Paging.PERSONAL_LIST_PAGE_SIZE,
    ) -> QueryPage[ListRecord]:
        """One page of the full list, labels included when the remote allows."""
        shapes = (
            RequestShape(
                "with-labels",
                _personal_list_payload(user_id, Fields.PERSONAL_LIST_WITH_LABELS, page, page_size),
            ),
            RequestShape(
                "minimal",
                _personal_list_payload(user_id, Fields.PERSONAL_LIST_MINIMAL, page, page_size),
            ),
        )
        raw = await self.read_variants(
            CacheNamespace.PERSONAL_LIST,
            Endpoint.PERSONAL_LIST,
            shapes,
            token=token,
            operation="fetch_personal_list_page",
        )
        records = (decode_list_record(record) for record in raw.results)
        return QueryPage(
            results=tuple(record for record in records if record is not None),
            more=raw.more,
        )

    async def fetch_membership_page(
        self,
        token: str,
        user_id: str,
        page: int = 1,
        page_size: int = Paging.PERSONAL_LIST_PAGE_SIZE,
    ) -> QueryPage[str]:
        """One page of identifiers only."""
        raw = await self.query_personal_list(
            token,
            user_id,
            fields=Fields.MEMBERSHIP,
            page=page,
            page_size=page_size,
        )
        return QueryPage(results=tuple(sorted(decode_identifier_set(raw.results))), more=raw.more)

    # =========================================================================
    # Personal list writes
    # =========================================================================

    async def _patch_list_entry(
        self,
        token: str,
        identifier: str,
        shapes: Sequence[RequestShape],
        operation: str,
    ) -> None:
        path = Endpoint.personal_list_entry(identifier)

        async def send(shape: RequestShape) -> Any:
            return await self.request_json(
                "PATCH",
                path,
                shape.payload,
                token=token,
                operation=f"{operation}:{shape.name}",
            )

        await run_shape_variants(shapes, send)
        self.invalidate_personal_list()

    async def add_to_list(
        self,
        token: str,
        identifier: str,
        status: ListStatus = DEFAULT_ADD_STATUS,
    ) -> None:
        """Add a title with one label, retrying with the legacy body on rejection."""
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        label = int(status)
        await self._patch_list_entry(
            token,
            vn_id,
            (
                RequestShape("labels_set", {"labels_set": [label]}),
                RequestShape("labels", {"labels": [label]}),
            ),
            operation="add_to_list",
        )
        logger.info("Added %s to personal list with label %d", vn_id, label)

    async def set_status(self, token: str, identifier: str, status: ListStatus) -> None:
        """Make ``status`` the single status label of an entry."""
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        target = int(status)
        await self._patch_list_entry(
            token,
            vn_id,
            (
                RequestShape(
                    "status",
                    {
                        "labels_unset": [label for label in STATUS_LABEL_IDS if label != target],
                        "labels_set": [target],
                    },
                ),
            ),
            operation="set_status",
        )
        logger.info("Set status of %s to %s", vn_id, status.name)

    async def remove_from_list(self, token: str, identifier: str) -> None:
        vn_id = normalize_identifier(identifier, EntityKind.TITLE)
        await self.request_json(
            "DELETE",
            Endpoint.personal_list_entry(vn_id),
            token=token,
            operation="remove_from_list",
        )
        self.invalidate_personal_list()
        logger.info("Removed %s from personal list", vn_id)

    def invalidate_personal_list(self) -> int:
        return self.cache.invalidate(namespace=CacheNamespace.PERSONAL_LIST)
