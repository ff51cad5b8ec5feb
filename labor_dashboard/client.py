"""Client-side refresh path for dashboard data.

:class:`DashboardClient` fetches the payload for a scope either from the
remote ``/dashboard-data`` endpoint or by running the shared pipeline
locally against a data source.  It remembers the last successful payload
per scope, and after a failed refresh it reports no current payload
rather than the previous scope's data.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from .config import SUPABASE_TIMEOUT
from .data_source import DataSource
from .errors import DashboardError
from .pipeline import build_dashboard_payload
from .scope import Scope

logger = logging.getLogger(__name__)


class DashboardClient:
    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        source: Optional[DataSource] = None,
        token: Optional[str] = None,
        timeout: float = SUPABASE_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if (base_url is None) == (source is None):
            raise ValueError("Pass exactly one of base_url or source.")
        self.base_url = base_url.rstrip("/") if base_url else None
        self.source = source
        self.token = token
        self.timeout = timeout
        self.session = session or (requests.Session() if base_url else None)

        self._cache: Dict[Scope, Dict[str, object]] = {}
        self.current_scope: Optional[Scope] = None
        self.error: Optional[str] = None

    def _fetch_remote(self, scope: Scope) -> Dict[str, object]:
        params = {"region": scope.region, "country": scope.country}
        if scope.year is not None:
            params["year"] = str(scope.year)
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = self.session.get(
                f"{self.base_url}/dashboard-data",
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DashboardError(f"Dashboard request failed: {exc}") from exc

        if not response.ok or not body.get("success"):
            message = body.get("error") or f"HTTP error! status: {response.status_code}"
            raise DashboardError(message)
        return body["data"]

    def fetch(self, scope: Scope) -> Dict[str, object]:
        """Fetch a fresh payload for ``scope`` and make it current."""
        logger.info("Fetching dashboard data: %s", scope)
        self.error = None
        try:
            if self.base_url:
                data = self._fetch_remote(scope)
            else:
                data = build_dashboard_payload(self.source, scope)
        except Exception as exc:
            self.error = str(exc)
            self.current_scope = None
            logger.error("Error fetching dashboard data: %s", exc)
            raise

        self._cache[scope] = data
        self.current_scope = scope
        return data

    def get(self, scope: Scope) -> Dict[str, object]:
        """Return the remembered payload for ``scope`` or fetch it."""
        if scope in self._cache:
            self.current_scope = scope
            self.error = None
            return self._cache[scope]
        return self.fetch(scope)

    def refresh(self) -> Optional[Dict[str, object]]:
        """Re-fetch the current scope, bypassing the remembered payload."""
        if self.current_scope is None:
            return None
        return self.fetch(self.current_scope)

    @property
    def current(self) -> Optional[Dict[str, object]]:
        if self.current_scope is None:
            return None
        return self._cache.get(self.current_scope)

    def clear(self) -> None:
        self._cache.clear()
        self.current_scope = None
