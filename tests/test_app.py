import logging

from fastapi.testclient import TestClient

from workhive.server.app import app
from workhive.server.log import setup_logging

client = TestClient(app)


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_routes_mounted_under_api():
    paths = {route.path for route in app.routes}
    assert "/api/workspaces/create" in paths
    assert "/api/workspaces/{slug}/projects/{key}/tasks/{number}/get" in paths
    assert "/api/workspaces/{slug}/attachments/{attachment_id}/download" in paths


def test_sql_logging_is_opt_in():
    try:
        setup_logging("INFO", log_sql=True)
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO
    finally:
        setup_logging("INFO")
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
