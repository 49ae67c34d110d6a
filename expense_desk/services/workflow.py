"""Expense workflow controller.

State machine driving one user's add/view/edit/delete session:

    BROWSING --select--> CATEGORY_LISTING --add--> FORM_ADD
                         CATEGORY_LISTING --view--> FORM_VIEW --edit--> FORM_EDIT
                         CATEGORY_LISTING --edit--> FORM_EDIT

Closing a form (cancel, back, successful submit after the acknowledgment
delay, or deleting the open record) returns to CATEGORY_LISTING; ``back``
from the listing returns to BROWSING. ``back`` never skips two levels.

The controller owns ``form`` exclusively. Listing records are snapshots from
the store and are never mutated; after every confirmed mutation the
statistics and listing are fetched again instead of being patched locally.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

from expense_desk.core.errors import (
    GatewayFailure,
    IllegalTransition,
    NotAuthenticated,
    RecordNotFound,
    ValidationFailure,
)
from expense_desk.models.category import CategoryDefinition
from expense_desk.models.constants import CORE_FIELDS, SPECIFIC_PREFIX
from expense_desk.models.employee import Employee
from expense_desk.models.expense import ExpenseRecord
from expense_desk.models.form import FormState, WorkflowState
from expense_desk.models.stats import Statistic, StatsOverview
from expense_desk.services.categories import get_category
from expense_desk.services.derived import on_field_change
from expense_desk.services.field_schema import ensure_valid
from expense_desk.services.gateway import ExpenseGateway
from expense_desk.services.pagination import DEFAULT_PAGE_SIZE, Page, paginate
from expense_desk.services.payload import build_payload
from expense_desk.services.reports import (
    EmployeeReportGroup,
    ReceiptSnapshot,
    build_labour_report,
    build_receipt,
)
from expense_desk.services.session import SessionContext

logger = logging.getLogger("expense_desk.workflow")

_NEW_RECORD = "<new>"
_FORM_STATES = (WorkflowState.FORM_ADD, WorkflowState.FORM_VIEW, WorkflowState.FORM_EDIT)
_EDITABLE_STATES = (WorkflowState.FORM_ADD, WorkflowState.FORM_EDIT)

LISTING_LOAD_FAILED = "Failed to load expenses"
DELETE_SUCCESS = "Expense deleted successfully"

F = TypeVar("F", bound=Callable[..., Any])


def _serialized(method: F) -> F:
    """Run a controller command under the controller's lock.

    HTTP routes run on a thread pool, so two requests for the same session can
    arrive together. The lock is re-entrant: a gateway callback on the same
    thread still reaches the in-flight checks instead of deadlocking.
    """

    @functools.wraps(method)
    def wrapper(self: "WorkflowController", *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class WorkflowController:
    def __init__(
        self,
        gateway: ExpenseGateway,
        session: SessionContext,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        close_delay: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ):
        self._gateway = gateway
        self._session = session
        self._page_size = page_size
        self._close_delay = close_delay
        self._clock = clock
        self._today = today

        self.state = WorkflowState.BROWSING
        self.category: Optional[CategoryDefinition] = None
        self.form = FormState.defaults(today())
        self.active_record_id: Optional[str] = None
        self.records: List[ExpenseRecord] = []
        self.stats: Dict[str, Statistic] = {}
        self.employees: List[Employee] = []
        self.error: Optional[str] = None
        self.acknowledgment: Optional[str] = None
        self.pending_delete: Optional[str] = None

        self._employees_loaded = False
        self._in_flight: Set[str] = set()
        self._close_due_at: Optional[float] = None
        self._lock = threading.RLock()

    # Internal --------------------------------------------------
    def _transition(self, new_state: WorkflowState) -> None:
        logger.debug(
            "transition %s -> %s",
            self.state.value,
            new_state.value,
            extra={"state": new_state.value},
        )
        self.state = new_state

    def _require(self, command: str, *states: WorkflowState) -> None:
        self.tick()
        if self.state not in states:
            raise IllegalTransition(self.state.value, command)

    def _clear_messages(self) -> None:
        self.error = None
        self.acknowledgment = None

    def _reset_form(self) -> None:
        self.form = FormState.defaults(self._today())

    def _find_record(self, record_id: str) -> ExpenseRecord:
        for record in self.records:
            if record.id == record_id:
                return record
        raise RecordNotFound(record_id)

    def _close_form(self, clear_messages: bool = True) -> None:
        self._close_due_at = None
        self.active_record_id = None
        self.pending_delete = None
        self._reset_form()
        if clear_messages:
            self._clear_messages()
        self._transition(WorkflowState.CATEGORY_LISTING)

    def _lose_session(self) -> None:
        """Authentication failure: drop the session and everything cached for it."""
        self._session.invalidate()
        self.category = None
        self.records = []
        self.stats = {}
        self.employees = []
        self._employees_loaded = False
        self.active_record_id = None
        self.pending_delete = None
        self._close_due_at = None
        self._reset_form()
        self._transition(WorkflowState.BROWSING)

    def _employee_ids(self) -> Optional[Set[str]]:
        if not self._employees_loaded:
            return None
        return {e.id for e in self.employees}

    @_serialized
    def tick(self) -> None:
        """Apply the delayed close that follows a successful submit, once due."""
        if self._close_due_at is not None and self._clock() >= self._close_due_at:
            self._close_form()

    # Refreshes (best effort) -----------------------------------
    @_serialized
    def start(self) -> None:
        """Initial load of statistics and the employee reference list."""
        self.refresh_statistics()
        self.refresh_employees()

    @_serialized
    def refresh_statistics(self) -> None:
        try:
            stats = self._gateway.fetch_stats()
        except NotAuthenticated:
            self._lose_session()
            raise
        except GatewayFailure as exc:
            logger.warning("statistics refresh failed: %s", exc.message)
            return
        self.stats = {s.category: s for s in stats}

    @_serialized
    def refresh_employees(self) -> None:
        try:
            employees = self._gateway.fetch_employees()
        except NotAuthenticated:
            self._lose_session()
            raise
        except GatewayFailure as exc:
            logger.warning("employee list refresh failed: %s", exc.message)
            return
        self.employees = employees
        self._employees_loaded = True

    @_serialized
    def refresh_listing(self) -> None:
        if self.category is None:
            return
        try:
            records = self._gateway.fetch_category_expenses(self.category.id)
        except NotAuthenticated:
            self._lose_session()
            raise
        except GatewayFailure as exc:
            logger.warning("listing refresh for %s failed: %s", self.category.id, exc.message)
            self.error = LISTING_LOAD_FAILED
            return
        self.records = records

    # Navigation ------------------------------------------------
    @_serialized
    def select_category(self, category_id: str) -> None:
        self._require("select_category", WorkflowState.BROWSING)
        category = get_category(category_id)
        self.category = category
        self.records = []
        self.active_record_id = None
        self._clear_messages()
        self._reset_form()
        self._transition(WorkflowState.CATEGORY_LISTING)
        self.refresh_listing()

    @_serialized
    def back(self) -> None:
        self.tick()
        if self.state in _FORM_STATES:
            self._close_form()
        elif self.state == WorkflowState.CATEGORY_LISTING:
            self.category = None
            self.records = []
            self.pending_delete = None
            self._clear_messages()
            self._reset_form()
            self._transition(WorkflowState.BROWSING)

    @_serialized
    def close(self) -> None:
        self._require("close", *_FORM_STATES)
        self._close_form()

    @_serialized
    def add(self) -> None:
        self._require("add", WorkflowState.CATEGORY_LISTING)
        self.active_record_id = None
        self.pending_delete = None
        self._clear_messages()
        self._reset_form()
        self._transition(WorkflowState.FORM_ADD)

    @_serialized
    def view(self, record_id: str) -> None:
        self._require("view", WorkflowState.CATEGORY_LISTING)
        record = self._find_record(record_id)
        self.form = FormState.from_record(record, self.category)
        self.active_record_id = record_id
        self.pending_delete = None
        self._clear_messages()
        self._transition(WorkflowState.FORM_VIEW)

    @_serialized
    def edit(self, record_id: str) -> None:
        self._require("edit", WorkflowState.CATEGORY_LISTING, WorkflowState.FORM_VIEW)
        record = self._find_record(record_id)
        preserve = self.state == WorkflowState.FORM_VIEW and self.active_record_id == record_id
        if not preserve:
            self.form = FormState.from_record(record, self.category)
        self.active_record_id = record_id
        self.pending_delete = None
        self._clear_messages()
        self._transition(WorkflowState.FORM_EDIT)

    # Form input ------------------------------------------------
    @_serialized
    def set_field(self, key: str, value: Any) -> FormState:
        """Write one input and re-run the derived rules it triggers."""
        self._require("set_field", *_EDITABLE_STATES)
        if self._close_due_at is not None:
            raise IllegalTransition(self.state.value, "set_field", "form already submitted")
        if key.startswith(SPECIFIC_PREFIX):
            field = self.category.get_field(key[len(SPECIFIC_PREFIX):])
            if field is None:
                raise ValidationFailure([f"unknown field '{key}'"])
            if field.read_only:
                raise ValidationFailure([f"{field.label} is calculated automatically"])
        elif key not in CORE_FIELDS:
            raise ValidationFailure([f"unknown field '{key}'"])
        self.form = on_field_change(self.category, key, self.form.with_value(key, value))
        return self.form

    @property
    def editable(self) -> bool:
        return self.state in _EDITABLE_STATES and not self._in_flight

    @property
    def authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def busy(self) -> bool:
        return bool(self._in_flight)

    # Submit ----------------------------------------------------
    @_serialized
    def submit(self) -> ExpenseRecord:
        self._require("submit", *_EDITABLE_STATES)
        if self._close_due_at is not None:
            raise IllegalTransition(self.state.value, "submit", "form already submitted")
        key = self.active_record_id or _NEW_RECORD
        if key in self._in_flight:
            raise IllegalTransition(self.state.value, "submit", "submit already in progress")

        category = self.category
        is_edit = self.state == WorkflowState.FORM_EDIT
        self._clear_messages()

        try:
            ensure_valid(
                category, self.form.core_fields(), self.form.category_specific, self._employee_ids()
            )
            payload = build_payload(category, self.form, self.employees)
        except ValidationFailure as exc:
            self.error = exc.violations[0]
            raise

        self._in_flight.add(key)
        try:
            if is_edit:
                record = self._gateway.replace_expense(self.active_record_id, payload)
            else:
                record = self._gateway.create_expense(payload)
        except NotAuthenticated:
            self._lose_session()
            raise
        except GatewayFailure as exc:
            logger.info("submit of %s expense failed: %s", category.id, exc.display_message)
            self.error = exc.display_message
            raise
        finally:
            self._in_flight.discard(key)

        verb = "updated" if is_edit else "added"
        logger.info(
            "%s expense %s", category.id, verb, extra={"category": category.id, "record_id": record.id}
        )
        self.acknowledgment = f"{category.name} {verb} successfully!"
        self.refresh_statistics()
        self.refresh_listing()
        self._close_due_at = self._clock() + self._close_delay
        self.tick()
        return record

    # Delete ----------------------------------------------------
    @_serialized
    def request_delete(self, record_id: str) -> str:
        """First step of a delete: remember the target and return the prompt."""
        self._require("delete", WorkflowState.CATEGORY_LISTING, WorkflowState.FORM_VIEW)
        record = self._find_record(record_id)
        if record_id in self._in_flight:
            raise IllegalTransition(self.state.value, "delete", "delete already in progress")
        self.pending_delete = record_id
        return (
            f'Are you sure you want to delete the expense "{record.title}"? '
            "This action cannot be undone."
        )

    @_serialized
    def cancel_delete(self) -> None:
        self.pending_delete = None

    @_serialized
    def confirm_delete(self) -> None:
        self._require("confirm_delete", WorkflowState.CATEGORY_LISTING, WorkflowState.FORM_VIEW)
        record_id = self.pending_delete
        if record_id is None:
            raise IllegalTransition(self.state.value, "confirm_delete", "no delete pending")
        if record_id in self._in_flight:
            raise IllegalTransition(self.state.value, "confirm_delete", "delete already in progress")

        self._clear_messages()
        self._in_flight.add(record_id)
        try:
            self._gateway.delete_expense(record_id)
        except NotAuthenticated:
            self._lose_session()
            raise
        except GatewayFailure as exc:
            logger.info("delete of %s failed: %s", record_id, exc.display_message)
            self.error = exc.display_message
            raise
        finally:
            self._in_flight.discard(record_id)
            self.pending_delete = None

        logger.info("expense deleted", extra={"record_id": record_id})
        self.acknowledgment = DELETE_SUCCESS
        self.refresh_statistics()
        self.refresh_listing()
        if self.state in _FORM_STATES and self.active_record_id == record_id:
            self._close_form(clear_messages=False)

    # Read models -----------------------------------------------
    @_serialized
    def page(self, number: int = 1) -> Page:
        if self.category is None:
            raise IllegalTransition(self.state.value, "page", "no category selected")
        return paginate(self.records, number, self._page_size)

    def overview(self) -> StatsOverview:
        return StatsOverview.from_stats(self.stats.values())

    @_serialized
    def receipt(self, record_id: str) -> ReceiptSnapshot:
        return build_receipt(self._find_record(record_id))

    @_serialized
    def labour_report(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[EmployeeReportGroup]:
        try:
            records = self._gateway.fetch_category_expenses("labour")
        except NotAuthenticated:
            self._lose_session()
            raise
        return build_labour_report(records, start, end)

    @_serialized
    def snapshot(self) -> Dict[str, Any]:
        """Plain view of the session for the presentation layer."""
        self.tick()
        return {
            "state": self.state.value,
            "category": self.category.id if self.category else None,
            "activeRecordId": self.active_record_id,
            "form": self.form.model_dump(by_alias=True),
            "editable": self.editable,
            "busy": self.busy,
            "error": self.error,
            "acknowledgment": self.acknowledgment,
            "pendingDelete": self.pending_delete,
            "overview": self.overview().model_dump(by_alias=True),
            "stats": {k: v.model_dump(by_alias=True) for k, v in self.stats.items()},
        }


__all__ = ["WorkflowController", "LISTING_LOAD_FAILED", "DELETE_SUCCESS"]
