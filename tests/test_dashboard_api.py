from datetime import timedelta

import pytest

from estate_api.services.finance_service import local_today
from estate_api.services.payroll_policy import previous_month_range

URL = "/api/v1/dashboard"


def _pluck(client, headers, worker_id, day, kg, rate=150, **extra):
    r = client.post("/api/v1/daily-plucking", json={
        "worker_id": worker_id, "date": day.isoformat(), "kg_plucked": kg, "rate_per_kg": rate, **extra,
    }, headers=headers)
    assert r.status_code == 201, r.get_json()


def _sale(client, headers, day, kg, rate, **extra):
    r = client.post("/api/v1/tea-sales", json={
        "date": day.isoformat(), "factory_name": "Highland", "kg_delivered": kg, "rate_per_kg": rate, **extra,
    }, headers=headers)
    assert r.status_code == 201, r.get_json()


def test_cards_compare_calendar_months(app, client, owner, make_worker):
    headers, _ = owner
    today = local_today()
    last_month = previous_month_range(today).start
    w = make_worker(headers)

    _pluck(client, headers, w["id"], today, 100)                    # 15000
    _pluck(client, headers, w["id"], last_month, 50)                # 7500
    client.post("/api/v1/daily-plucking", json={
        "worker_id": w["id"], "date": today.isoformat(), "is_advance": True, "advance_amount": 2000,
    }, headers=headers)
    client.post("/api/v1/bonuses", json={"worker_id": w["id"], "month": today.strftime("%Y-%m"), "amount": 1000},
                headers=headers)
    _sale(client, headers, today, 100, 300)                         # 30000
    _sale(client, headers, last_month, 100, 200)                    # 20000

    cards = client.get(f"{URL}/cards", headers=headers).get_json()["data"]
    assert cards["monthly_revenue"] == 30000.0
    assert cards["monthly_expenses"] == 14000.0       # 15000 + 1000 - 2000
    assert cards["monthly_profit"] == 16000.0
    assert cards["revenue_change"] == 50.0
    assert cards["expenses_change"] == pytest.approx((14000 - 7500) / 7500 * 100)
    assert cards["todays_harvest"] == 100.0
    assert cards["period"]["start"] == today.replace(day=1).isoformat()


def test_cards_zero_base_change_is_zero(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    _pluck(client, headers, w["id"], local_today(), 40)
    cards = client.get(f"{URL}/cards", headers=headers).get_json()["data"]
    assert cards["expenses_change"] == 0.0
    assert cards["revenue_change"] == 0.0
    assert cards["harvest_change"] == 0.0


def test_rollup_policy_config_is_honoured(app, client, owner, make_worker):
    headers, _ = owner
    app.config["ROLLUP_DEDUCT_ADVANCES"] = False
    w = make_worker(headers)
    today = local_today()
    _pluck(client, headers, w["id"], today, 10)
    client.post("/api/v1/daily-plucking", json={
        "worker_id": w["id"], "date": today.isoformat(), "is_advance": True, "advance_amount": 500,
    }, headers=headers)
    cards = client.get(f"{URL}/cards", headers=headers).get_json()["data"]
    assert cards["monthly_expenses"] == 1500.0


def test_financial_series(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    today = local_today()
    _pluck(client, headers, w["id"], today, 10)
    _sale(client, headers, today, 10, 400)

    data = client.get(f"{URL}/financial?range=7d", headers=headers).get_json()["data"]
    assert data["range"] == "7d"
    assert len(data["series"]) == 7
    last = data["series"][-1]
    assert last == {"date": today.isoformat(), "revenue": 4000.0, "expenses": 1500.0, "profit": 2500.0}
    assert data["summary"]["profit"] == 2500.0

    assert client.get(f"{URL}/financial?range=1y", headers=headers).status_code == 422


def test_harvest_trends_and_overview(client, owner, make_worker):
    headers, _ = owner
    a = make_worker(headers, "W001")
    b = make_worker(headers, "W002", "Nimal", "Silva")
    today = local_today()
    yesterday = today - timedelta(days=1)
    _pluck(client, headers, a["id"], today, 20)
    _pluck(client, headers, b["id"], today, 10)
    _pluck(client, headers, a["id"], yesterday, 15)

    trends = client.get(f"{URL}/harvest-trends?days=7", headers=headers).get_json()["data"]
    assert len(trends) == 7
    assert trends[-1]["date"] == today.isoformat()
    assert trends[-1]["total_kg"] == 30.0
    assert trends[-1]["workers"] == 2
    assert trends[-2]["total_kg"] == 15.0

    ov = client.get(f"{URL}/overview", headers=headers).get_json()["data"]
    assert ov["active_workers"] == 2
    assert ov["todays_harvest"] == 30.0
    assert ov["yesterdays_harvest"] == 15.0
    assert ov["harvest_change"] == 100.0


def test_financial_series_leaves_advances_to_summary(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    today = local_today()
    _pluck(client, headers, w["id"], today, 10)
    client.post("/api/v1/daily-plucking", json={
        "worker_id": w["id"], "date": today.isoformat(), "is_advance": True, "advance_amount": 500,
    }, headers=headers)

    data = client.get(f"{URL}/financial?range=7d", headers=headers).get_json()["data"]
    assert data["series"][-1]["expenses"] == 1500.0
    assert data["summary"]["expenses"] == 1000.0
