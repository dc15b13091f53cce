"""
HTTP client for the Teamboard API.

Thin wrapper: one method per route, JSON decoded into schema objects.
Any non-2xx response or transport failure raises ApiError once; there
are no retries.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from .errors import ApiError
from .schema import KanbanTask, Report, User, normalize_day

logger = logging.getLogger(__name__)


def _day_param(value) -> str:
    """Calendar day as YYYY-MM-DD, so the server never sees a UTC-shifted time."""
    return normalize_day(value).date().isoformat()


def _with_days(data: Dict[str, Any], keys) -> Dict[str, Any]:
    payload = dict(data)
    for key in keys:
        if isinstance(payload.get(key), date):
            payload[key] = _day_param(payload[key])
    return payload


class TeamboardClient:
    """Authenticated session against one Teamboard server."""

    def __init__(self, base_url: str, token: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise ApiError(f"Cannot reach {self.base_url}: {e}", status=0) from e
        if not r.ok:
            try:
                body = r.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = body["error"]
            else:
                message = r.text or r.reason
            raise ApiError(message, status=r.status_code)
        return r.json()

    # ── Principal ──

    def me(self) -> User:
        data = self._request("GET", "/me")
        return User(id=str(data["id"]), username=data["username"])

    # ── Reports ──

    def get_reports(self) -> List[Report]:
        return [Report.from_dict(d) for d in self._request("GET", "/reports")]

    def get_reports_by_date_range(self, start, end) -> List[Report]:
        params = {"startDate": _day_param(start), "endDate": _day_param(end)}
        return [Report.from_dict(d) for d in self._request("GET", "/reports/calendar", params=params)]

    def search_reports(self, keyword: str) -> List[Report]:
        data = self._request("GET", "/reports/search", params={"keyword": keyword})
        return [Report.from_dict(d) for d in data]

    def get_report(self, report_id: str) -> Report:
        return Report.from_dict(self._request("GET", f"/reports/{report_id}"))

    def create_report(self, data: Dict[str, Any]) -> Report:
        payload = _with_days(data, ("date",))
        return Report.from_dict(self._request("POST", "/reports", json=payload))

    def update_report(self, report_id: str, data: Dict[str, Any]) -> Report:
        payload = _with_days(data, ("date",))
        return Report.from_dict(self._request("PUT", f"/reports/{report_id}", json=payload))

    def delete_report(self, report_id: str) -> None:
        self._request("DELETE", f"/reports/{report_id}")

    # ── Kanban ──

    def get_tasks(self) -> List[KanbanTask]:
        return [KanbanTask.from_dict(d) for d in self._request("GET", "/kanban")]

    def get_task(self, task_id: str) -> KanbanTask:
        return KanbanTask.from_dict(self._request("GET", f"/kanban/{task_id}"))

    def create_task(self, data: Dict[str, Any]) -> KanbanTask:
        payload = _with_days(data, ("startDate", "deadline"))
        return KanbanTask.from_dict(self._request("POST", "/kanban", json=payload))

    def update_task(self, task_id: str, data: Dict[str, Any]) -> KanbanTask:
        payload = _with_days(data, ("startDate", "deadline"))
        return KanbanTask.from_dict(self._request("PUT", f"/kanban/{task_id}", json=payload))

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/kanban/{task_id}")
