"""
clickrank.client.transport — Click Total Transports
====================================================

The aggregator talks to the Ledger through a :class:`ClickTransport`:

* :class:`HttpClickTransport` — the HTTP API (``POST /api/clicks``) over
  httpx, bearer token auth.
* :class:`LedgerClickTransport` — in-process, straight to the progress
  service.  Used by tests and by server-side simulations.

Both map failures onto the clickrank error taxonomy so the aggregator's
retry rules do not depend on the transport.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import httpx

from clickrank.database.engine import run_db
from clickrank.errors import (
    AuthenticationError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from clickrank.services import progress_service

if TYPE_CHECKING:
    from clickrank.engine.cache import CatalogCache
    from clickrank.services.ledger import Ledger

logger = logging.getLogger(__name__)


class ClickTransport(Protocol):
    async def submit_total(self, new_total: int) -> int:
        """Write the full total; return the confirmed total."""
        ...

    async def fetch_total(self) -> int: ...

    async def submit_click_speed(self, rate: int) -> list[int]:
        """Report a click-speed measurement; return granted achievement ids."""
        ...


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
class HttpClickTransport:
    """Submit totals to a running clickrank API.

    *token* is either a bearer token string or a zero-argument callable
    returning the current one, so a credential refresh is picked up by the
    next request.
    """

    def __init__(
        self,
        base_url: str,
        token: str | Callable[[], str],
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=10,
            transport=httpx.AsyncHTTPTransport(retries=1),
        )

    def _headers(self) -> dict[str, str]:
        token = self._token() if callable(self._token) else self._token
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            resp = await self._client.request(
                method, url, headers=self._headers(), **kwargs,
            )
        except httpx.HTTPError as exc:
            raise TransientStoreError(f"{method} {url} failed: {exc}") from exc

        if resp.status_code == 401:
            raise AuthenticationError("Credentials rejected")
        if resp.status_code == 404:
            raise NotFoundError(resp.json().get("detail", "Not found"))
        if resp.status_code in (400, 409, 422):
            body = resp.json()
            detail = body.get("detail", {})
            if isinstance(detail, dict):
                raise ValidationError(
                    detail.get("message", "Rejected"),
                    current_total=detail.get("current_total"),
                )
            raise ValidationError(str(detail))
        if resp.status_code >= 500:
            raise TransientStoreError(f"Server error {resp.status_code}")
        resp.raise_for_status()
        return resp.json()

    async def submit_total(self, new_total: int) -> int:
        body = await self._request("POST", "/api/clicks", json={"total": new_total})
        return int(body["click_total"])

    async def fetch_total(self) -> int:
        body = await self._request("GET", "/api/clicks")
        return int(body["click_total"])

    async def submit_click_speed(self, rate: int) -> list[int]:
        body = await self._request("POST", "/api/click-speed", json={"rate": rate})
        return list(body.get("granted_achievements", []))

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# In-process
# ---------------------------------------------------------------------------
class LedgerClickTransport:
    """Call :func:`progress_service.submit_total` directly on a worker thread."""

    def __init__(self, ledger: Ledger, catalog: CatalogCache, user_id: str) -> None:
        self.ledger = ledger
        self.catalog = catalog
        self.user_id = user_id

    async def submit_total(self, new_total: int) -> int:
        result = await run_db(
            progress_service.submit_total,
            self.ledger, self.catalog, self.user_id, new_total,
        )
        return result.confirmed_total

    async def fetch_total(self) -> int:
        return await run_db(self.ledger.get_total, self.user_id)

    async def submit_click_speed(self, rate: int) -> list[int]:
        granted = await run_db(
            progress_service.record_click_speed,
            self.ledger, self.catalog, self.user_id, rate,
        )
        return [g.achievement_id for g in granted.achievements]
