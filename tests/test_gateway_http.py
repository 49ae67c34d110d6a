import json

import httpx
import pytest

from expense_desk.core.config import Settings
from expense_desk.core.errors import GatewayFailure, NotAuthenticated
from expense_desk.models.form import FormState
from expense_desk.services.categories import get_category
from expense_desk.services.gateway import HttpExpenseGateway
from expense_desk.services.payload import build_payload
from expense_desk.services.session import SessionContext

BASE = "http://store.test/api"

RECORD = {
    "_id": "r1",
    "expenseCategory": "home",
    "title": "Utilities Expense",
    "amount": 120,
    "amountPaid": 120,
    "paymentStatus": "paid",
    "expenseDate": "2024-03-15T00:00:00.000Z",
    "categorySpecific": {"homeType": "utilities"},
}


def make_gateway(handler, token="tok", retries=2):
    return HttpExpenseGateway(
        BASE,
        SessionContext(token=token),
        retries=retries,
        backoff=0,
        transport=httpx.MockTransport(handler),
    )


def ok(data=None, message=None):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return httpx.Response(200, json=body)


def home_payload():
    form = FormState(amount="120", expense_date="2024-03-15", category_specific={"homeType": "utilities"})
    return build_payload(get_category("home"), form)


def test_requests_carry_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return ok({"id": "u1", "name": "Demo"})

    with make_gateway(handler) as gw:
        assert gw.fetch_current_user() == {"id": "u1", "name": "Demo"}
    assert seen[0].url == httpx.URL(f"{BASE}/admin/auth/me")
    assert seen[0].headers["Authorization"] == "Bearer tok"


def test_no_token_sends_no_authorization_header():
    seen = []

    def handler(request):
        seen.append(request)
        return ok({"summary": []})

    make_gateway(handler, token=None).fetch_stats()
    assert "Authorization" not in seen[0].headers


def test_stats_skip_malformed_rows():
    def handler(request):
        return ok(
            {
                "summary": [
                    {"category": "home", "count": 2, "totalAmount": 300, "pendingAmount": 0},
                    {"count": "lots"},
                ]
            }
        )

    stats = make_gateway(handler).fetch_stats()
    assert [(s.category, s.count, s.total_amount) for s in stats] == [("home", 2, 300.0)]


def test_category_listing_and_employees():
    def handler(request):
        if request.url.path == "/api/expenses/category/home":
            return ok({"expenses": [RECORD]})
        if request.url.path == "/api/admin/employees/for-expense":
            return ok([{"_id": "emp-1", "firstName": "Ali", "lastName": "Khan"}])
        return httpx.Response(404, json={"success": False, "message": "nope"})

    gw = make_gateway(handler)
    records = gw.fetch_category_expenses("home")
    assert records[0].id == "r1"
    assert records[0].category_specific.home_type == "utilities"
    assert gw.fetch_employees()[0].display_name == "Ali Khan"


def test_create_posts_wire_body_and_unwraps_expense():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"success": True, "data": {"expense": RECORD}})

    record = make_gateway(handler).create_expense(home_payload())
    body = json.loads(seen[0].content)
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/expenses"
    assert body["expenseCategory"] == "home"
    assert body["amountPaid"] == body["amount"] == 120.0
    assert body["categorySpecific"] == {"homeType": "utilities"}
    assert record.id == "r1"


def test_replace_accepts_bare_record_data():
    def handler(request):
        assert request.method == "PUT"
        assert request.url.path == "/api/expenses/r1"
        return ok(RECORD)

    assert make_gateway(handler).replace_expense("r1", home_payload()).title == "Utilities Expense"


def test_unsuccessful_envelope_is_a_failure_with_details():
    def handler(request):
        return httpx.Response(
            200,
            json={"success": False, "message": "Validation failed", "errors": ["Amount too large", "Bad date"]},
        )

    with pytest.raises(GatewayFailure) as err:
        make_gateway(handler).create_expense(home_payload())
    assert err.value.message == "Validation failed"
    assert err.value.display_message == "Amount too large, Bad date"


def test_create_without_record_in_response_fails():
    def handler(request):
        return ok(None)

    with pytest.raises(GatewayFailure):
        make_gateway(handler).create_expense(home_payload())


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token_raises_not_authenticated(status):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(status, json={"success": False, "message": "Unauthorized"})

    with pytest.raises(NotAuthenticated):
        make_gateway(handler).fetch_stats()
    assert len(calls) == 1


def test_non_json_response_is_reported():
    def handler(request):
        return httpx.Response(200, text="<html>proxy error</html>")

    with pytest.raises(GatewayFailure) as err:
        make_gateway(handler).fetch_stats()
    assert err.value.message.startswith("Expected JSON but got text/plain")
    assert "<html>proxy error</html>" in err.value.message


def test_error_status_uses_envelope_message():
    def handler(request):
        return httpx.Response(404, json={"success": False, "message": "Expense not found"})

    with pytest.raises(GatewayFailure) as err:
        make_gateway(handler).delete_expense("missing")
    assert err.value.message == "Expense not found"
    assert err.value.status_code == 404


def test_get_is_retried_on_server_error():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, json={"success": False, "message": "busy"})
        return ok({"summary": []})

    assert make_gateway(handler, retries=2).fetch_stats() == []
    assert len(calls) == 3


def test_get_gives_up_after_retries():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"success": False, "message": "down"})

    with pytest.raises(GatewayFailure) as err:
        make_gateway(handler, retries=1).fetch_stats()
    assert err.value.message == "down"
    assert len(calls) == 2


def test_mutations_are_sent_once():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"success": False, "message": "down"})

    with pytest.raises(GatewayFailure):
        make_gateway(handler, retries=3).create_expense(home_payload())
    assert len(calls) == 1


def test_transport_errors_become_gateway_failures():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayFailure) as err:
        make_gateway(handler, retries=1).fetch_stats()
    assert "Network error" in err.value.message


def test_from_settings_uses_normalized_base_url():
    seen = []

    def handler(request):
        seen.append(request)
        return ok({"summary": []})

    settings = Settings(api_base_url="http://store.test/")
    settings.init_post_load()
    gw = HttpExpenseGateway.from_settings(
        settings, SessionContext(token="t"), transport=httpx.MockTransport(handler)
    )
    gw.fetch_stats()
    assert str(seen[0].url) == "http://store.test/api/expenses/stats"
