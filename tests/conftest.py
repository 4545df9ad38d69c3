import os

import pytest

from estate_api import create_app
from estate_api.extensions import db


@pytest.fixture()
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def register(client):
    """register(email, org_name) -> (headers, organization_id)"""
    def _register(email="owner@estate.test", org_name="Green Hills", password="secret123"):
        r = client.post("/api/v1/auth/register", json={
            "email": email, "password": password, "full_name": email.split("@")[0].title(),
            "organization_name": org_name,
        })
        assert r.status_code == 201, r.get_json()
        data = r.get_json()["data"]
        org_id = data["user"]["organizations"][0]["organization_id"]
        headers = {"Authorization": f"Bearer {data['access']}", "X-Organization-Id": str(org_id)}
        return headers, org_id
    return _register


@pytest.fixture()
def owner(register):
    return register()


@pytest.fixture()
def make_worker(client):
    def _make(headers, employee_id="W001", first_name="Kamala", last_name="Perera", **extra):
        body = {"employee_id": employee_id, "first_name": first_name, "last_name": last_name, **extra}
        r = client.post("/api/v1/workers", json=body, headers=headers)
        assert r.status_code == 201, r.get_json()
        return r.get_json()["data"]
    return _make
