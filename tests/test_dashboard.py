"""
Tests for admin dashboard statistics and audit logs.
"""
from fastapi import status

from apihub.models.request_log import RequestLog


def add_log(db, api_key, path="/api/v1/letters", status_code=200, method="GET", latency_ms=10, endpoint=None):
    log = RequestLog(
        api_key_id=api_key.id,
        endpoint_id=endpoint.id if endpoint else None,
        method=method,
        path=path,
        query_params={},
        status_code=status_code,
        latency_ms=latency_ms,
    )
    db.add(log)
    db.commit()
    return log


def test_dashboard_stats_empty(client, admin_headers):
    response = client.get("/api/admin/dashboard-stats", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["stats"] == {
        "total_requests": 0,
        "global_latency": 0,
        "active_endpoints": 0,
        "error_rate": 0,
    }
    assert data["status_codes"] == {"success": 0, "client_error": 0, "server_error": 0}
    assert [point["time"] for point in data["traffic_data"]] == [
        "00:00", "04:00", "08:00", "12:00", "16:00", "20:00", "23:59",
    ]


def test_dashboard_stats_aggregates(client, db_session, admin_headers, sample_dataset, make_endpoint, make_api_key):
    endpoint = make_endpoint(sample_dataset)
    make_endpoint(sample_dataset, path="/off", is_active=False)
    api_key, _ = make_api_key()
    add_log(db_session, api_key, status_code=200, latency_ms=10, endpoint=endpoint)
    add_log(db_session, api_key, status_code=200, latency_ms=20, endpoint=endpoint)
    add_log(db_session, api_key, status_code=404, latency_ms=30)
    add_log(db_session, api_key, status_code=500, latency_ms=40, endpoint=endpoint)

    data = client.get("/api/admin/dashboard-stats", headers=admin_headers).json()

    assert data["stats"] == {
        "total_requests": 4,
        "global_latency": 25,
        "active_endpoints": 1,
        "error_rate": 50,
    }
    assert data["status_codes"] == {"success": 2, "client_error": 1, "server_error": 1}


def test_dashboard_requires_admin(client, developer_headers):
    response = client.get("/api/admin/dashboard-stats", headers=developer_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_audit_logs_filters(client, db_session, admin_headers, make_api_key):
    api_key, _ = make_api_key(name="Mobile")
    add_log(db_session, api_key, path="/api/v1/Users", status_code=200)
    add_log(db_session, api_key, path="/api/v1/orders", status_code=404, method="POST")
    add_log(db_session, api_key, path="/api/v1/orders", status_code=503)

    everything = client.get("/api/admin/audit-logs", headers=admin_headers).json()
    assert everything["total"] == 3
    assert everything["items"][0]["status_code"] == 503
    assert everything["items"][0]["api_key_name"] == "Mobile"

    by_method = client.get("/api/admin/audit-logs?method=post", headers=admin_headers).json()
    assert [item["status_code"] for item in by_method["items"]] == [404]

    by_status = client.get("/api/admin/audit-logs?status=server-error", headers=admin_headers).json()
    assert [item["status_code"] for item in by_status["items"]] == [503]

    by_search = client.get("/api/admin/audit-logs?search=users", headers=admin_headers).json()
    assert [item["path"] for item in by_search["items"]] == ["/api/v1/Users"]

    ignored = client.get("/api/admin/audit-logs?status=teapot&method=all", headers=admin_headers).json()
    assert ignored["total"] == 3


def test_audit_logs_pagination(client, db_session, admin_headers, make_api_key):
    api_key, _ = make_api_key()
    for i in range(5):
        add_log(db_session, api_key, path=f"/api/v1/p{i}")

    data = client.get("/api/admin/audit-logs?page=2&limit=2", headers=admin_headers).json()

    assert data["total"] == 5
    assert data["pages"] == 3
    assert data["page"] == 2
    assert [item["path"] for item in data["items"]] == ["/api/v1/p2", "/api/v1/p1"]


def test_clear_audit_logs(client, db_session, admin_headers, make_api_key):
    api_key, _ = make_api_key()
    add_log(db_session, api_key)
    add_log(db_session, api_key)

    response = client.delete("/api/admin/audit-logs", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["deleted_count"] == 2
    assert db_session.query(RequestLog).count() == 0
