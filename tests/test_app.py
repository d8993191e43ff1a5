from fastapi.testclient import TestClient

from mentormatch.exceptions import InvalidStateError
from mentormatch.main import app


client = TestClient(app)


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_match_routes_require_a_token():
    assert client.get("/mentors/1/match-suggestions").status_code == 401
    assert client.post("/matches/1/accept").status_code == 401


def test_matching_errors_become_json_details():
    routes = {route.path for route in app.routes}
    assert "/matches/generate" in routes
    assert "/admin/mentors/{mentor_id}/capacity" in routes

    app.add_api_route("/_raise-conflict", _raise_conflict)
    response = client.get("/_raise-conflict")

    assert response.status_code == 409
    assert response.json() == {"detail": {"code": "MATCH_EXPIRED", "message": "Match suggestion expired"}}


def _raise_conflict():
    raise InvalidStateError("Match suggestion expired", code="MATCH_EXPIRED")
