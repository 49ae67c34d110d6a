"""Synchronization gateway to the remote expense store.

``ExpenseGateway`` is the boundary the workflow controller depends on;
``HttpExpenseGateway`` talks to the store's JSON API. Every response is an
envelope ``{success, message?, data?, errors?}`` and ``success: false`` is a
failure even when the HTTP status is 200.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from expense_desk.core.config import Settings
from expense_desk.core.errors import GatewayFailure
from expense_desk.models.employee import Employee
from expense_desk.models.expense import ExpensePayload, ExpenseRecord
from expense_desk.models.stats import Statistic
from expense_desk.services.http_client import request_json
from expense_desk.services.session import SessionContext

logger = logging.getLogger("expense_desk.gateway")

M = TypeVar("M", bound=BaseModel)


class ExpenseGateway(ABC):
    @abstractmethod
    def fetch_current_user(self) -> Dict[str, Any]:
        """Return the authenticated user or raise NotAuthenticated."""
        raise NotImplementedError

    @abstractmethod
    def fetch_stats(self) -> List[Statistic]:
        raise NotImplementedError

    @abstractmethod
    def fetch_employees(self) -> List[Employee]:
        raise NotImplementedError

    @abstractmethod
    def fetch_category_expenses(self, category_id: str) -> List[ExpenseRecord]:
        """All records of one category, newest first."""
        raise NotImplementedError

    @abstractmethod
    def create_expense(self, payload: ExpensePayload) -> ExpenseRecord:
        raise NotImplementedError

    @abstractmethod
    def replace_expense(self, record_id: str, payload: ExpensePayload) -> ExpenseRecord:
        raise NotImplementedError

    @abstractmethod
    def delete_expense(self, record_id: str) -> None:
        raise NotImplementedError


def parse_each(model: Type[M], rows: Any, what: str) -> List[M]:
    """Parse rows one by one; a malformed row is logged and skipped."""
    parsed: List[M] = []
    for row in rows or []:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning("skipping malformed %s: %s", what, exc.errors()[:1])
    return parsed


class HttpExpenseGateway(ExpenseGateway):
    def __init__(
        self,
        base_url: str,
        session: SessionContext,
        *,
        timeout: float = 10.0,
        retries: int = 2,
        backoff: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._retries = retries
        self._backoff = backoff
        self._client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session: SessionContext,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "HttpExpenseGateway":
        return cls(
            settings.api_base_url,
            session,
            timeout=settings.http_timeout_seconds,
            retries=settings.http_retries,
            backoff=settings.http_backoff_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpExpenseGateway":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # Internal --------------------------------------------------
    def _call(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Content-Type": "application/json", **self._session.auth_headers()}
        body = request_json(
            self._client,
            method,
            f"{self._base_url}{path}",
            json=json,
            headers=headers,
            retries=self._retries if method == "GET" else 0,
            backoff=self._backoff,
        )
        if not body.get("success"):
            raise GatewayFailure(
                body.get("message") or f"{method} {path} failed",
                errors=body.get("errors"),
            )
        return body.get("data")

    @staticmethod
    def _record_from(data: Any, fallback: Callable[[], str]) -> ExpenseRecord:
        if isinstance(data, dict) and isinstance(data.get("expense"), dict):
            data = data["expense"]
        if not isinstance(data, dict):
            raise GatewayFailure(fallback())
        try:
            return ExpenseRecord.model_validate(data)
        except ValidationError as exc:
            raise GatewayFailure(f"store returned a malformed expense: {exc.errors()[:1]}") from exc

    # Public API -----------------------------------------------
    def fetch_current_user(self) -> Dict[str, Any]:
        data = self._call("GET", "/admin/auth/me")
        return data if isinstance(data, dict) else {}

    def fetch_stats(self) -> List[Statistic]:
        data = self._call("GET", "/expenses/stats") or {}
        return parse_each(Statistic, data.get("summary"), "statistic")

    def fetch_employees(self) -> List[Employee]:
        data = self._call("GET", "/admin/employees/for-expense")
        return parse_each(Employee, data, "employee")

    def fetch_category_expenses(self, category_id: str) -> List[ExpenseRecord]:
        data = self._call("GET", f"/expenses/category/{category_id}") or {}
        return parse_each(ExpenseRecord, data.get("expenses"), "expense")

    def create_expense(self, payload: ExpensePayload) -> ExpenseRecord:
        data = self._call("POST", "/expenses", json=payload.to_wire())
        logger.info("created %s expense", payload.category)
        return self._record_from(data, lambda: "store did not return the created expense")

    def replace_expense(self, record_id: str, payload: ExpensePayload) -> ExpenseRecord:
        data = self._call("PUT", f"/expenses/{record_id}", json=payload.to_wire())
        logger.info("replaced expense %s", record_id)
        return self._record_from(data, lambda: "store did not return the updated expense")

    def delete_expense(self, record_id: str) -> None:
        self._call("DELETE", f"/expenses/{record_id}")
        logger.info("deleted expense %s", record_id)


__all__ = ["ExpenseGateway", "HttpExpenseGateway", "parse_each"]
