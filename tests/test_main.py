import pytest
from fastapi.testclient import TestClient

from csrf import generate_csrf_token
from main import app, get_client
from schemas import RecurringScope


@pytest.fixture
def client(fake_client):
    fake_client.wallet_rows = [{"id": 1, "balance": 100}]
    fake_client.transaction_rows = [
        {"id": 1, "type": "income", "amount": 1000, "date": "2024-03-01",
         "category": {"name": "Salary"}},
        {"id": 2, "type": "expense", "amount": 40, "date": "2024-03-02",
         "category": {"name": "Food"}, "isRecurring": False, "parentId": 9},
    ]
    app.dependency_overrides[get_client] = lambda: fake_client
    yield TestClient(app)
    app.dependency_overrides.clear()


def editor_form(**overrides) -> dict[str, str]:
    data = {
        "csrf_token": generate_csrf_token(),
        "type": "expense",
        "amount": "12,5",
        "date": "2024-05-02",
        "wallet_id": "1",
    }
    data.update(overrides)
    return data


def test_ranges_endpoint(client) -> None:
    resp = client.get("/api/ranges", params={"range": "week", "value": "2024-W01"})
    assert resp.status_code == 200
    body = resp.json()
    assert (body["start"], body["end"], body["iso_week"]) == ("2024-01-01", "2024-01-07", "2024-W01")
    assert body["params"]["dateFrom"].startswith("2024-01-01T00:00:00")


def test_bad_ranges_are_rejected(client) -> None:
    resp = client.get(
        "/api/ranges", params={"range": "custom", "from": "2024-02-10", "to": "2024-02-01"}
    )
    assert resp.status_code == 400
    assert client.get("/api/ranges", params={"range": "week", "value": "soon"}).status_code == 400


def test_dashboard_api(client) -> None:
    resp = client.get("/api/dashboard", params={"range": "month", "value": "2024-03"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["summary"]["total_income"] == 1000
    assert body["summary"]["total_expenses"] == 40
    assert body["labels"] == ["S1", "S2", "S3", "S4"]
    assert body["period"]["label"] == "Marzo 2024"
    assert [t["id"] for t in body["transactions"]] == [2, 1]


def test_bad_backend_dates_are_skipped(client, fake_client) -> None:
    fake_client.transaction_rows.append({"type": "income", "amount": 1, "date": ""})
    assert client.get("/api/register").status_code == 200
    resp = client.get("/api/dashboard", params={"range": "month", "value": "2024-03"})
    assert resp.status_code == 200
    assert resp.json()["summary"]["total_income"] == 1000


def test_dashboard_api_rejects_unknown_graph(client) -> None:
    resp = client.get("/api/dashboard", params={"graph": "profit"})
    assert resp.status_code == 400


def test_pages_render(client) -> None:
    page = client.get("/", params={"range": "month", "value": "2024-03"})
    assert page.status_code == 200
    assert "Marzo 2024" in page.text
    assert "Salary" in page.text
    register = client.get("/register")
    assert register.status_code == 200


def test_components_render(client, fake_client) -> None:
    params = {"range": "month", "value": "2024-03"}
    assert client.get("/components/period-chart", params=params).status_code == 200
    donut = client.get("/components/category-donut", params={**params, "slice": 0})
    assert donut.status_code == 200
    assert "Food" in donut.text
    assert client.get("/components/wealth-chart", params={"active": 0}).status_code == 200
    fake_client.summary = {"assets": []}
    fake_client.timeline = [
        {"date": "2024-01-01", "equity": 10, "netContributions": 10},
        {"date": "2024-02-01", "equity": 12, "netContributions": 10},
    ]
    chart = client.get("/components/portfolio-chart", params={"active": 1})
    assert chart.status_code == 200
    assert "Aportado" in chart.text


def test_investment_routes(client) -> None:
    assert client.get("/api/investments/42").status_code == 404
    empty = client.get("/components/investment-chart")
    assert "Selecciona un activo" in empty.text
    missing = client.get("/components/investment-chart", params={"asset_id": 42})
    assert "Activo no encontrado" in missing.text


def test_line_hover(client) -> None:
    resp = client.get(
        "/api/charts/hover",
        params={"chart": "line", "source": "touch", "x": 250, "y": 100,
                "layout_width": 500, "n": 5, "canvas": "portfolio"},
    )
    assert resp.status_code == 200
    assert resp.json()["index"] == 2


def test_bar_hover(client) -> None:
    resp = client.get(
        "/api/charts/hover",
        params=[("chart", "bar"), ("x", "260"), ("rect_left", "100"),
                ("layout_width", "366"), ("values", "10"), ("values", "10"), ("values", "10")],
    )
    assert resp.json()["index"] == 1
    assert client.get("/api/charts/hover", params={"chart": "pie"}).status_code == 400
    assert client.get("/api/charts/hover", params={"source": "pen"}).status_code == 400


def test_editor_component_for_edit_shows_scope(client) -> None:
    resp = client.get("/components/tx-editor", params={"transaction_id": 2})
    assert resp.status_code == 200
    assert 'name="scope"' in resp.text
    assert "Editar transacción" in resp.text
    assert client.get("/components/tx-editor", params={"transaction_id": 77}).status_code == 404
    create = client.get("/components/tx-editor", params={"type": "income"})
    assert "Nueva transacción" in create.text


def test_create_transaction_with_htmx(client, fake_client) -> None:
    resp = client.post("/transactions", data=editor_form(), headers={"HX-Request": "true"})
    assert resp.status_code == 204
    assert resp.headers["HX-Trigger"] == "transactions-changed"
    kind, payload = fake_client.calls[-1]
    assert kind == "create"
    assert payload["amount"] == 12.5
    assert payload["walletId"] == 1


def test_create_transaction_redirects_without_htmx(client) -> None:
    resp = client.post("/transactions", data=editor_form(), follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"


def test_invalid_forms(client) -> None:
    bad_csrf = client.post("/transactions", data=editor_form(csrf_token="nope"))
    assert bad_csrf.status_code == 400
    invalid = client.post("/transactions", data=editor_form(amount="-3"))
    assert invalid.status_code == 400
    assert "amount" in invalid.text


def test_edit_recurring_instance_defaults_scope(client, fake_client) -> None:
    resp = client.post("/transactions/2/edit", data=editor_form(), headers={"HX-Request": "1"})
    assert resp.status_code == 204
    kind, tx_id, _, scope = fake_client.calls[-1]
    assert (kind, tx_id, scope) == ("update", 2, RecurringScope.single)


def test_delete_transaction(client, fake_client) -> None:
    resp = client.post(
        "/transactions/2/delete",
        data={"csrf_token": generate_csrf_token(), "scope": "series"},
    )
    assert resp.status_code == 204
    assert fake_client.calls[-1] == ("delete", 2, RecurringScope.series)
    bad_scope = client.post(
        "/transactions/2/delete",
        data={"csrf_token": generate_csrf_token(), "scope": "all"},
    )
    assert bad_scope.status_code == 400
