"""
Tests for the dynamic gateway under /api/v1.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from fastapi import status
from starlette.datastructures import QueryParams

from apihub.models.api_key import APIKey, KeyStatus
from apihub.models.endpoint import Endpoint
from apihub.models.request_log import RequestLog
from apihub.services.dataset_service import DatasetService
from apihub.services.gateway_service import query_to_dict


def key_header(secret: str) -> dict:
    return {"X-API-Key": secret}


def test_paginated_response_shape(client, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters", response_config={"page_size": 2})
    _, secret = make_api_key()

    response = client.get("/api/v1/letters?page=2&limit=2", headers=key_header(secret))

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["data"] == [{"id": 3, "name": "c"}]
    assert body["pagination"] == {
        "page": 2,
        "limit": 2,
        "total": 3,
        "pages": 2,
        "hasNext": False,
        "hasPrev": True,
    }
    assert body["meta"]["endpoint"] == "GET /letters"
    assert body["meta"]["method"] == "GET"
    assert "timestamp" in body["meta"]


def test_filter_query_parameter(client, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters")
    _, secret = make_api_key()

    response = client.get("/api/v1/letters?name=a", headers=key_header(secret))

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["data"] == [{"id": 1, "name": "a"}]
    assert body["pagination"]["total"] == 1


def test_unpaginated_endpoint_omits_pagination(client, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/all-letters", response_config={"paginate": False})
    _, secret = make_api_key()

    body = client.get("/api/v1/all-letters", headers=key_header(secret)).json()

    assert len(body["data"]) == 3
    assert "pagination" not in body


def test_missing_key_is_rejected_before_endpoint_lookup(client, sample_dataset, make_endpoint):
    make_endpoint(sample_dataset, path="/letters")

    with patch("apihub.services.gateway_service.GatewayService.resolve_endpoint") as resolve:
        response = client.get("/api/v1/letters")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {
        "success": False,
        "error": "API key is required. Include X-API-Key header.",
    }
    resolve.assert_not_called()


def test_unknown_key_is_invalid(client, sample_dataset, make_endpoint):
    make_endpoint(sample_dataset, path="/letters")

    response = client.get("/api/v1/letters", headers=key_header("ak_" + "0" * 48))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "error": "Invalid API key"}


def test_specific_scope_denies_other_endpoints(client, sample_dataset, make_endpoint, make_api_key):
    e1 = make_endpoint(sample_dataset, path="/e1")
    make_endpoint(sample_dataset, path="/e2")
    _, secret = make_api_key(access_level="specific", endpoint_ids=[e1.id])

    assert client.get("/api/v1/e1", headers=key_header(secret)).status_code == status.HTTP_200_OK

    response = client.get("/api/v1/e2", headers=key_header(secret))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "API key does not have access to this endpoint"


def test_unknown_and_inactive_endpoints_look_the_same(client, db_session, sample_dataset, make_endpoint, make_api_key):
    endpoint = make_endpoint(sample_dataset, path="/letters")
    endpoint.is_active = False
    db_session.commit()
    _, secret = make_api_key()

    inactive = client.get("/api/v1/letters", headers=key_header(secret))
    missing = client.get("/api/v1/nothing-here", headers=key_header(secret))

    assert inactive.status_code == missing.status_code == status.HTTP_404_NOT_FOUND
    assert inactive.json()["error"] == "Endpoint GET /api/v1/letters not found"
    assert missing.json()["error"] == "Endpoint GET /api/v1/nothing-here not found"


def test_prefix_is_not_stripped_from_request_path(client, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters")
    _, secret = make_api_key()

    response = client.get("/api/v1/api/v1/letters", headers=key_header(secret))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "Endpoint GET /api/v1/api/v1/letters not found"


def test_doubled_prefix_path_is_matched_exactly(client, sample_dataset, make_endpoint, make_api_key):
    endpoint = make_endpoint(sample_dataset, path="/api/v1/api/v1/x")
    assert endpoint.path == "/api/v1/api/v1/x"
    _, secret = make_api_key()

    response = client.get("/api/v1/api/v1/x", headers=key_header(secret))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total"] == 3


def test_method_must_match(client, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters", method="POST")
    _, secret = make_api_key()

    assert client.get("/api/v1/letters", headers=key_header(secret)).status_code == status.HTTP_404_NOT_FOUND

    response = client.post("/api/v1/letters", headers=key_header(secret))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["meta"]["method"] == "POST"


def test_inactive_dataset_returns_404(client, db_session, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters")
    DatasetService(db_session).update(sample_dataset.id, is_active=False)
    _, secret = make_api_key()

    response = client.get("/api/v1/letters", headers=key_header(secret))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "Dataset not found or inactive"


def test_expired_key_is_forbidden(client, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters")
    _, secret = make_api_key(expires_at=datetime.now(timezone.utc) - timedelta(days=1))

    response = client.get("/api/v1/letters", headers=key_header(secret))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "API key has expired"


def test_revoked_key_is_forbidden(client, db_session, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters")
    api_key, secret = make_api_key()
    api_key.status = KeyStatus.REVOKED
    db_session.commit()

    response = client.get("/api/v1/letters", headers=key_header(secret))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "API key has been revoked"


def test_successful_request_is_logged_and_counted(client, db_session, sample_dataset, make_endpoint, make_api_key):
    endpoint = make_endpoint(sample_dataset, path="/letters")
    api_key, secret = make_api_key()

    response = client.get(
        "/api/v1/letters?name=b",
        headers={**key_header(secret), "User-Agent": "pytest-agent"},
    )
    assert response.status_code == status.HTTP_200_OK

    db_session.expire_all()
    logs = db_session.query(RequestLog).all()
    assert len(logs) == 1
    log = logs[0]
    assert log.api_key_id == api_key.id
    assert log.endpoint_id == endpoint.id
    assert log.method == "GET"
    assert log.path == "/api/v1/letters"
    assert log.query_params == {"name": "b"}
    assert log.status_code == 200
    assert log.latency_ms >= 0
    assert log.user_agent == "pytest-agent"

    assert db_session.get(APIKey, api_key.id).total_usage == 1
    assert db_session.get(APIKey, api_key.id).last_used_at is not None
    assert db_session.get(Endpoint, endpoint.id).total_requests == 1
    assert db_session.get(Endpoint, endpoint.id).last_accessed is not None


def test_failed_resolution_is_logged_without_endpoint(client, db_session, make_api_key):
    api_key, secret = make_api_key()

    client.get("/api/v1/missing", headers=key_header(secret))

    db_session.expire_all()
    log = db_session.query(RequestLog).one()
    assert log.api_key_id == api_key.id
    assert log.endpoint_id is None
    assert log.status_code == 404
    assert db_session.get(APIKey, api_key.id).total_usage == 1


def test_access_denied_is_logged_with_endpoint(client, db_session, sample_dataset, make_endpoint, make_api_key):
    endpoint = make_endpoint(sample_dataset, path="/letters")
    _, secret = make_api_key(access_level="specific", endpoint_ids=[])

    client.get("/api/v1/letters", headers=key_header(secret))

    db_session.expire_all()
    log = db_session.query(RequestLog).one()
    assert log.status_code == 403
    assert log.endpoint_id == endpoint.id
    assert db_session.get(Endpoint, endpoint.id).total_requests == 0


def test_unauthenticated_requests_are_not_logged(client, db_session, sample_dataset, make_endpoint):
    make_endpoint(sample_dataset, path="/letters")

    client.get("/api/v1/letters")
    client.get("/api/v1/letters", headers=key_header("ak_unknown"))

    assert db_session.query(RequestLog).count() == 0


def test_usage_recording_failure_does_not_change_response(client, db_session, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters")
    _, secret = make_api_key()

    with patch("apihub.services.usage_service.RequestLog", side_effect=RuntimeError("disk full")):
        response = client.get("/api/v1/letters", headers=key_header(secret))

    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()["data"]) == 3
    assert db_session.query(RequestLog).count() == 0


def test_regenerated_key_invalidates_old_secret(client, admin_headers, sample_dataset, make_endpoint, make_api_key):
    make_endpoint(sample_dataset, path="/letters")
    api_key, old_secret = make_api_key()

    response = client.post(f"/api/admin/access-keys/{api_key.id}/regenerate", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    new_secret = response.json()["key"]
    assert new_secret != old_secret

    old = client.get("/api/v1/letters", headers=key_header(old_secret))
    assert old.status_code == status.HTTP_401_UNAUTHORIZED
    assert old.json()["error"] == "Invalid API key"

    assert client.get("/api/v1/letters", headers=key_header(new_secret)).status_code == status.HTTP_200_OK


def test_gateway_index_requires_key(client, make_api_key):
    assert client.get("/api/v1").status_code == status.HTTP_401_UNAUTHORIZED

    _, secret = make_api_key()
    body = client.get("/api/v1", headers=key_header(secret)).json()
    assert body["success"] is True
    assert body["version"] == "v1"
    assert body["documentation"].endswith("/api/v1/endpoints")


def test_available_endpoints_respect_scope(client, sample_dataset, make_endpoint, make_api_key):
    e1 = make_endpoint(sample_dataset, path="/b-side", name="B side")
    make_endpoint(sample_dataset, path="/a-side", name="A side")
    _, all_secret = make_api_key(access_level="all")
    _, specific_secret = make_api_key(access_level="specific", endpoint_ids=[e1.id])

    all_body = client.get("/api/v1/endpoints", headers=key_header(all_secret)).json()
    assert [e["path"] for e in all_body["endpoints"]] == ["/api/v1/a-side", "/api/v1/b-side"]
    assert all_body["endpoints"][0]["url"] == "http://testserver/api/v1/a-side"

    specific_body = client.get("/api/v1/endpoints", headers=key_header(specific_secret)).json()
    assert [e["name"] for e in specific_body["endpoints"]] == ["B side"]


def test_projection_is_applied(client, db_session, make_endpoint, make_api_key):
    dataset = DatasetService(db_session).create(
        name="people",
        records=[{"id": 1, "name": "ann", "ssn": "111"}, {"id": 2, "name": "bo", "ssn": "222"}],
    )
    make_endpoint(dataset, path="/people", response_config={"exclude_fields": ["ssn"]})
    _, secret = make_api_key()

    body = client.get("/api/v1/people?sort=id&order=desc", headers=key_header(secret)).json()

    assert body["data"] == [{"id": 2, "name": "bo"}, {"id": 1, "name": "ann"}]


def test_csv_overflowing_number_is_served_as_text(client, admin_headers, make_endpoint, make_api_key, db_session):
    upload = client.post(
        "/api/admin/datasets/upload",
        headers=admin_headers,
        files={"file": ("big.csv", "id,size\n1,1e400\n", "text/csv")},
    )
    assert upload.status_code == status.HTTP_201_CREATED
    dataset = DatasetService(db_session).get(upload.json()["dataset"]["id"])
    make_endpoint(dataset, path="/big")
    _, secret = make_api_key()

    response = client.get("/api/v1/big", headers=key_header(secret))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"] == [{"id": 1, "size": "1e400"}]


def test_repeated_query_parameter_keeps_last_value():
    assert query_to_dict(QueryParams("name=a&name=b&page=2")) == {"name": "b", "page": "2"}
