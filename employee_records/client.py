"""
HTTP client for the employee and salary listings.

Background for newcomers:
    Table screens refetch whenever the filter, page or month changes, and fast
    clicking can fire the same fetch again before the first one returns. Each
    logical fetch ("employees", "salaries") therefore holds a non-blocking
    lock while it runs; a second call for the same operation returns None
    straight away instead of queueing. Different operations do not block
    each other.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import requests

from employee_records.schemas.forms import FilterCondition
from employee_records.schemas.hr import EmployeePage, SalaryPage

logger = logging.getLogger(__name__)


class InFlightGuard:
    """One non-blocking lock per operation key."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def is_busy(self, key: str) -> bool:
        return self._lock_for(key).locked()

    @contextmanager
    def claim(self, key: str) -> Iterator[bool]:
        """Yield True if the caller owns `key` for the block, False if it is already taken."""
        lock = self._lock_for(key)
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()


class RecordsClient:
    def __init__(
        self,
        base_url: str,
        *,
        user_id: int | None = None,
        timeout: float = 10,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._guard = InFlightGuard()
        if user_id is not None:
            self._session.headers["Authorization"] = f"Bearer {user_id}"

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        resp = self._session.get(f"{self._base_url}{path}", params=params, timeout=self._timeout)
        # Paged endpoints answer 500 with an empty page + error; anything else non-2xx is raised.
        if not resp.ok and resp.status_code != 500:
            resp.raise_for_status()
        return resp.json()

    def fetch_employees(
        self,
        page: int = 1,
        page_size: int = 10,
        filters: Sequence[FilterCondition] = (),
    ) -> EmployeePage | None:
        """
        GET /employees. Returns None if an employee fetch is already in flight.
        """

        with self._guard.claim("employees") as claimed:
            if not claimed:
                logger.debug("Employee fetch already in flight; dropping page=%s", page)
                return None

            params: dict[str, Any] = {"page": page, "pageSize": page_size}
            if filters:
                params["filters"] = json.dumps([f.model_dump(by_alias=True) for f in filters])

            try:
                body = self._get("/employees", params)
            except (requests.RequestException, ValueError) as e:
                logger.warning("Employee fetch failed: %s", type(e).__name__)
                return EmployeePage(page_size=page_size, error="Failed to fetch employees")
            return EmployeePage.model_validate(body)

    def fetch_salaries(
        self,
        month: int | None = None,
        year: int | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> SalaryPage | None:
        """
        GET /salaries. Returns None if a salary fetch is already in flight.
        """

        with self._guard.claim("salaries") as claimed:
            if not claimed:
                logger.debug("Salary fetch already in flight; dropping page=%s", page)
                return None

            params: dict[str, Any] = {"page": page, "pageSize": page_size}
            if month is not None and year is not None:
                params.update(month=month, year=year)

            try:
                body = self._get("/salaries", params)
            except (requests.RequestException, ValueError) as e:
                logger.warning("Salary fetch failed: %s", type(e).__name__)
                return SalaryPage(page_size=page_size, error="Failed to fetch salaries")
            return SalaryPage.model_validate(body)
