from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import pytest

from expense_desk.core.errors import GatewayFailure
from expense_desk.models.employee import Employee
from expense_desk.models.expense import ExpensePayload, ExpenseRecord
from expense_desk.models.stats import Statistic
from expense_desk.services.gateway import ExpenseGateway
from expense_desk.services.session import SessionContext
from expense_desk.services.workflow import WorkflowController

TODAY = date(2024, 3, 15)

EMPLOYEES = [
    Employee(
        id="emp-1",
        employee_id="E001",
        first_name="Ali",
        last_name="Khan",
        department="Production",
        position="Operator",
        employee_type="permanent",
    ),
    Employee(
        id="emp-2",
        employee_id="E002",
        first_name="Sara",
        last_name="Ahmed",
        department="Packing",
        position="Supervisor",
        employee_type="contract",
    ),
]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(ExpenseGateway):
    """In-memory expense store recording every call."""

    def __init__(self, employees: Optional[List[Employee]] = None):
        self.employees = list(employees if employees is not None else EMPLOYEES)
        self.records: List[ExpenseRecord] = []
        self.calls: List[Tuple[str, Any]] = []
        self.fail: Dict[str, Exception] = {}
        self.user: Dict[str, Any] = {"id": "u-1", "name": "Demo User"}
        self.on_create = None
        self.on_delete = None
        self.closed = False
        self._next_id = 1

    def _enter(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        exc = self.fail.get(name)
        if exc is not None:
            raise exc

    def calls_named(self, name: str) -> List[Any]:
        return [arg for n, arg in self.calls if n == name]

    def seed(self, **wire: Any) -> ExpenseRecord:
        data = {"_id": f"seed-{self._next_id}", "paymentStatus": "paid", **wire}
        self._next_id += 1
        record = ExpenseRecord.model_validate(data)
        self.records.append(record)
        return record

    def _store(self, record_id: str, payload: ExpensePayload) -> ExpenseRecord:
        wire = payload.to_wire()
        return ExpenseRecord.model_validate(
            {**wire, "_id": record_id, "paymentStatus": "paid", "outstandingAmount": 0}
        )

    def close(self) -> None:
        self.closed = True

    # ExpenseGateway --------------------------------------------
    def fetch_current_user(self) -> Dict[str, Any]:
        self._enter("fetch_current_user")
        return self.user

    def fetch_stats(self) -> List[Statistic]:
        self._enter("fetch_stats")
        stats: Dict[str, Statistic] = {}
        for r in self.records:
            prev = stats.get(r.category) or Statistic(category=r.category)
            stats[r.category] = Statistic(
                category=r.category,
                count=prev.count + 1,
                total_amount=prev.total_amount + r.amount,
                total_paid=prev.total_paid + r.amount_paid,
                pending_amount=prev.pending_amount + r.outstanding_amount,
            )
        return list(stats.values())

    def fetch_employees(self) -> List[Employee]:
        self._enter("fetch_employees")
        return list(self.employees)

    def fetch_category_expenses(self, category_id: str) -> List[ExpenseRecord]:
        self._enter("fetch_category_expenses", category_id)
        return [r for r in reversed(self.records) if r.category == category_id]

    def create_expense(self, payload: ExpensePayload) -> ExpenseRecord:
        self._enter("create_expense", payload)
        if self.on_create is not None:
            self.on_create()
        record = self._store(f"exp-{self._next_id}", payload)
        self._next_id += 1
        self.records.append(record)
        return record

    def replace_expense(self, record_id: str, payload: ExpensePayload) -> ExpenseRecord:
        self._enter("replace_expense", (record_id, payload))
        for i, existing in enumerate(self.records):
            if existing.id == record_id:
                record = self._store(record_id, payload)
                self.records[i] = record
                return record
        raise GatewayFailure("Expense not found", status_code=404)

    def delete_expense(self, record_id: str) -> None:
        self._enter("delete_expense", record_id)
        if self.on_delete is not None:
            self.on_delete()
        before = len(self.records)
        self.records = [r for r in self.records if r.id != record_id]
        if len(self.records) == before:
            raise GatewayFailure("Expense not found", status_code=404)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def session() -> SessionContext:
    return SessionContext(token="test-token")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def controller(gateway: FakeGateway, session: SessionContext, clock: FakeClock) -> WorkflowController:
    ctl = WorkflowController(gateway, session, close_delay=0.0, clock=clock, today=lambda: TODAY)
    ctl.start()
    return ctl
