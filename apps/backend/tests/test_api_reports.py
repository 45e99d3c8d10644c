from __future__ import annotations

from datetime import datetime

from cashflow import models


def _txn(client, description, type, category, amount, occurred_at, **extra):
    payload = {
        "type": type,
        "description": description,
        "category": category,
        "amount": amount,
        "occurred_at": occurred_at,
    }
    payload.update(extra)
    res = client.post("/api/transactions", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


def test_calendar_groups_by_effective_date(client):
    _txn(client, "Salario", "income", "trabalho", 3000, "2025-03-05")
    _txn(client, "Mercado", "expense", "alimentacao", 200, "2025-03-05")
    _txn(client, "Cartao", "expense", "cartao", 900, "2025-02-26", due_date="2025-03-10")
    _txn(client, "Fora", "expense", "geral", 10, "2025-04-01")

    res = client.get("/api/calendar", params={"month": "2025-03"})
    assert res.status_code == 200
    days = res.json()
    assert [d["date"] for d in days] == ["2025-03-05", "2025-03-10"]
    assert (days[0]["income"], days[0]["expense"], days[0]["net"]) == (3000, 200, 2800)
    assert sorted(t["description"] for t in days[0]["transactions"]) == ["Mercado", "Salario"]
    assert [t["description"] for t in days[1]["transactions"]] == ["Cartao"]


def test_dashboard_summary(client):
    _txn(client, "Salario", "income", "trabalho", 3000, "2025-03-05")
    _txn(client, "Mercado", "expense", "alimentacao", 200, "2025-03-06")
    _txn(client, "Feira", "expense", "alimentacao", 50, "2025-03-09")
    _txn(client, "Onibus", "expense", "transporte", 30, "2025-03-11")

    res = client.get("/api/dashboard/summary", params={"month": "2025-03"})
    assert res.status_code == 200
    body = res.json()
    assert body["month"] == "2025-03"
    assert (body["income"], body["expense"], body["balance"]) == (3000, 280, 2720)
    assert body["categories"] == [
        {"category": "alimentacao", "income": 0, "expense": 250},
        {"category": "trabalho", "income": 3000, "expense": 0},
        {"category": "transporte", "income": 0, "expense": 30},
    ]


def test_reports_overview(client):
    _txn(client, "Salario", "income", "trabalho", 3000, "2025-02-05")
    _txn(client, "Aluguel", "expense", "moradia", 1200, "2025-02-10")
    _txn(client, "Salario", "income", "trabalho", 3000, "2025-03-05")
    _txn(client, "Mercado", "expense", "alimentacao", 400, "2025-03-08")
    _txn(client, "Antigo", "expense", "geral", 999, "2024-09-01")

    res = client.get("/api/reports/overview", params={"months": 3, "today": "2025-03-20"})
    assert res.status_code == 200
    body = res.json()
    assert body["start_month"] == "2025-01"
    assert body["end_month"] == "2025-03"
    assert [m["month"] for m in body["monthly"]] == ["2025-01", "2025-02", "2025-03"]
    assert body["monthly"][0] == {"month": "2025-01", "income": 0, "expense": 0, "balance": 0}
    assert body["monthly"][1]["balance"] == 1800
    assert body["expenses_by_category"] == [
        {"category": "moradia", "amount": 1200},
        {"category": "alimentacao", "amount": 400},
    ]
    assert body["current_month"] == {"income": 3000, "expense": 400, "balance": 2600}
    assert body["previous_month"] == {"income": 3000, "expense": 1200, "balance": 1800}


def test_reports_overview_bounds(client):
    assert client.get("/api/reports/overview", params={"months": 0}).status_code == 422
    assert client.get("/api/reports/overview", params={"months": 25}).status_code == 422


def test_reports_overview_defaults_to_local_month(client, monkeypatch):
    # Late on the 31st locally, while UTC is already in the next month
    monkeypatch.setattr(models, "now_local_naive", lambda: datetime(2025, 3, 31, 23, 30))
    body = client.get("/api/reports/overview", params={"months": 2}).json()
    assert body["end_month"] == "2025-03"
    assert body["start_month"] == "2025-02"
