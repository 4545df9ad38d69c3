import csv
import io
import warnings

import pytest

from estate_api.models.plucking import DailyPlucking
from estate_api.services.finance_service import local_today
from estate_api.services.payroll_policy import AmbiguousClassification

URL = "/api/v1/daily-plucking"
DAY = "2025-11-12"


def _post(client, headers, **body):
    body.setdefault("date", DAY)
    return client.post(URL, json=body, headers=headers)


def _seed_scenario(client, headers, make_worker):
    a = make_worker(headers, "W001", "Kamala", "Perera")
    b = make_worker(headers, "W002", "Nimal", "Silva")
    r1 = _post(client, headers, worker_id=a["id"], kg_plucked=15.5, rate_per_kg=150)
    r2 = _post(client, headers, worker_id=b["id"], kg_plucked=20, rate_per_kg=150,
               extra_work_items=[{"description": "weeding", "amount": 500}])
    r3 = _post(client, headers, worker_id=a["id"], is_advance=True, advance_amount=2000, notes="festival")
    assert [r.status_code for r in (r1, r2, r3)] == [201, 201, 201]
    return a, b, r1.get_json()["data"], r2.get_json()["data"], r3.get_json()["data"]


def test_create_records_store_signed_wage(client, owner, make_worker):
    headers, _ = owner
    _, _, pluck_a, pluck_b, adv = _seed_scenario(client, headers, make_worker)

    assert pluck_a["type"] == "plucking"
    assert pluck_a["wage_earned"] == 2325.0
    assert pluck_b["extra_work_payment"] == 500.0
    assert pluck_b["wage_earned"] == 3500.0
    assert pluck_b["extra_work_items"] == [{"description": "weeding", "amount": 500.0}]
    assert adv["type"] == "advance"
    assert adv["wage_earned"] == -2000.0
    assert adv["kg_plucked"] == 0.0


def test_default_rate_applies(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    r = _post(client, headers, worker_id=w["id"], kg_plucked=10)
    assert r.status_code == 201
    assert r.get_json()["data"]["rate_per_kg"] == 150.0
    assert r.get_json()["data"]["wage_earned"] == 1500.0


def test_list_and_summary_for_day(client, owner, make_worker):
    headers, _ = owner
    _seed_scenario(client, headers, make_worker)

    listed = client.get(f"{URL}?date={DAY}", headers=headers).get_json()
    assert len(listed["data"]) == 3
    assert listed["meta"]["from"] == DAY

    summary = client.get(f"{URL}/summary?date={DAY}", headers=headers).get_json()["data"]
    assert summary == {
        "total_kg": 35.5, "total_earned": 5825.0, "total_advanced": 2000.0,
        "total_paid": 7825.0, "worker_count": 2, "avg_kg_per_worker": 17.75,
    }

    other_day = client.get(f"{URL}/summary?date=2025-11-13", headers=headers).get_json()["data"]
    assert other_day["worker_count"] == 0
    assert other_day["avg_kg_per_worker"] == 0.0


def test_list_range_and_search(client, owner, make_worker):
    headers, _ = owner
    _seed_scenario(client, headers, make_worker)
    rows = client.get(f"{URL}?from=2025-11-01&to=2025-11-30&q=nimal", headers=headers).get_json()["data"]
    assert len(rows) == 1
    assert rows[0]["employee_id"] == "W002"

    bad = client.get(f"{URL}?from=2025-11-30&to=2025-11-01", headers=headers)
    assert bad.status_code == 422


def test_list_defaults_to_today(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    today = local_today().isoformat()
    _post(client, headers, worker_id=w["id"], kg_plucked=12, date=today)
    _post(client, headers, worker_id=w["id"], kg_plucked=9, date="2020-01-01")
    rows = client.get(URL, headers=headers).get_json()["data"]
    assert [r["date"] for r in rows] == [today]


def test_negative_values_rejected(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    r = _post(client, headers, worker_id=w["id"], kg_plucked=-1, rate_per_kg=150)
    assert r.status_code == 422
    err = r.get_json()["error"]
    assert err["code"] == "INVALID_INPUT"
    assert err["detail"] == {"field": "kg_plucked"}

    r = _post(client, headers, worker_id=w["id"], is_advance=True, advance_amount=-5)
    assert r.status_code == 422
    assert DailyPlucking.query.count() == 0


def test_missing_worker_and_foreign_worker(client, register, make_worker):
    a_headers, _ = register("a@estate.test", "A")
    b_headers, _ = register("b@estate.test", "B")
    foreign = make_worker(b_headers)

    assert _post(client, a_headers, kg_plucked=5).status_code == 422
    r = _post(client, a_headers, worker_id=foreign["id"], kg_plucked=5)
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "INVALID_WORKER"


def test_toggle_kind_clears_other_fields(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    rec = _post(client, headers, worker_id=w["id"], kg_plucked=10, rate_per_kg=150,
                extra_work_items=[{"description": "pruning", "amount": 200}]).get_json()["data"]

    r = client.put(f"{URL}/{rec['id']}", json={"is_advance": True, "advance_amount": 750}, headers=headers)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["type"] == "advance"
    assert data["kg_plucked"] == 0.0
    assert data["extra_work_items"] == []
    assert data["wage_earned"] == -750.0

    r = client.put(f"{URL}/{rec['id']}", json={"is_advance": False, "kg_plucked": 8, "rate_per_kg": 160},
                   headers=headers)
    data = r.get_json()["data"]
    assert data["advance_amount"] == 0.0
    assert data["wage_earned"] == 1280.0


def test_partial_update_keeps_other_fields(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    rec = _post(client, headers, worker_id=w["id"], kg_plucked=10, rate_per_kg=150).get_json()["data"]
    data = client.put(f"{URL}/{rec['id']}", json={"kg_plucked": 12}, headers=headers).get_json()["data"]
    assert data["rate_per_kg"] == 150.0
    assert data["wage_earned"] == 1800.0


def test_delete_is_hard_delete(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    rec = _post(client, headers, worker_id=w["id"], kg_plucked=10).get_json()["data"]
    assert client.delete(f"{URL}/{rec['id']}", headers=headers).status_code == 200
    assert client.get(f"{URL}/{rec['id']}", headers=headers).status_code == 404
    assert DailyPlucking.query.count() == 0


def test_preview_does_not_persist(client, owner):
    headers, _ = owner
    r = client.post(f"{URL}/preview", json={
        "kg_plucked": 20, "rate_per_kg": 150,
        "extra_work_items": [{"description": "weeding", "amount": 500}],
    }, headers=headers)
    assert r.status_code == 200
    assert r.get_json()["data"] == {"type": "plucking", "extra_work_total": 500.0, "amount": 3500.0}

    adv = client.post(f"{URL}/preview", json={"is_advance": True, "advance_amount": 1000}, headers=headers)
    assert adv.get_json()["data"]["amount"] == -1000.0
    assert DailyPlucking.query.count() == 0


def test_export_csv_blanks_plucking_cells_for_advances(client, owner, make_worker):
    headers, _ = owner
    _seed_scenario(client, headers, make_worker)
    r = client.get(f"{URL}/export?date={DAY}&format=csv", headers=headers)
    assert r.status_code == 200
    assert r.mimetype == "text/csv"
    assert f"daily-plucking-{DAY}.csv" in r.headers["Content-Disposition"]

    rows = list(csv.DictReader(io.StringIO(r.data.decode("utf-8"))))
    assert len(rows) == 3
    adv = next(x for x in rows if x["Type"] == "Advance")
    assert adv["Kg Plucked"] == ""
    assert adv["Rate"] == ""
    assert adv["Amount"] == "-2000.0"


def test_export_json_and_xlsx(client, owner, make_worker):
    headers, _ = owner
    _seed_scenario(client, headers, make_worker)
    js = client.get(f"{URL}/export?date={DAY}&format=json", headers=headers)
    assert len(js.get_json()) == 3

    x = client.get(f"{URL}/export?date={DAY}&format=xlsx", headers=headers)
    assert x.status_code == 200
    assert x.data[:2] == b"PK"

    bad = client.get(f"{URL}/export?date={DAY}&format=pdf", headers=headers)
    assert bad.status_code == 400
    assert bad.get_json()["error"]["code"] == "FORMAT_NOT_SUPPORTED"


def test_more_than_two_decimals_rejected(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    r = _post(client, headers, worker_id=w["id"], kg_plucked="10.555", rate_per_kg=150)
    assert r.status_code == 422
    assert r.get_json()["error"]["detail"] == {"field": "kg_plucked"}

    r = _post(client, headers, worker_id=w["id"], is_advance=True, advance_amount=100.125)
    assert r.status_code == 422
    assert r.get_json()["error"]["detail"] == {"field": "advance_amount"}
    assert DailyPlucking.query.count() == 0


def test_stored_wage_matches_summary(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    rec = _post(client, headers, worker_id=w["id"], kg_plucked="10.55", rate_per_kg="150.33").get_json()["data"]
    assert rec["wage_earned"] == 1585.9815

    summary = client.get(f"{URL}/summary?date={DAY}", headers=headers).get_json()["data"]
    assert summary["total_earned"] == rec["wage_earned"]
    assert summary["total_kg"] == 10.55


def test_rows_of_removed_worker_still_counted(client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    other = make_worker(headers, "W002", "Nimal", "Silva")
    assert _post(client, headers, worker_id=w["id"], kg_plucked=10).status_code == 201
    assert _post(client, headers, worker_id=other["id"], kg_plucked=4).status_code == 201

    # sqlite does not enforce the cascade, leaving rows behind like legacy data would
    assert client.delete(f"/api/v1/workers/{w['id']}", headers=headers).status_code == 200

    summary = client.get(f"{URL}/summary?date={DAY}", headers=headers).get_json()["data"]
    assert summary["total_earned"] == 2100.0
    assert summary["worker_count"] == 2
    listed = client.get(f"{URL}?date={DAY}", headers=headers).get_json()["data"]
    assert len(listed) == 2
    # a name search can only match rows that still have a worker
    found = client.get(f"{URL}?date={DAY}&q=Nimal", headers=headers).get_json()["data"]
    assert len(found) == 1


def test_strict_mode_warns_on_missing_flag(app, client, owner, make_worker):
    headers, _ = owner
    w = make_worker(headers)
    app.config["STRICT_CLASSIFICATION"] = True

    with pytest.warns(AmbiguousClassification):
        r = _post(client, headers, worker_id=w["id"], kg_plucked=10)
    assert r.status_code == 201
    assert r.get_json()["data"]["type"] == "plucking"

    with pytest.warns(AmbiguousClassification):
        p = client.post(f"{URL}/preview", json={"kg_plucked": 5}, headers=headers)
    assert p.get_json()["data"]["type"] == "plucking"

    with warnings.catch_warnings():
        warnings.simplefilter("error", AmbiguousClassification)
        r = _post(client, headers, worker_id=w["id"], is_advance=False, kg_plucked=2)
    assert r.status_code == 201
