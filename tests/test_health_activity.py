"""
Health checks, response headers and the activity log endpoint.
"""


class TestHealth:
    def test_health(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_live_checks_database(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"

    def test_security_headers(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "default-src 'none'" in res.headers["Content-Security-Policy"]
        assert res.headers["Cache-Control"] == "no-store"

    def test_request_id_echoed(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "abc-123"})
        assert res.headers["X-Request-ID"] == "abc-123"
        assert "X-Request-Duration-Ms" in res.headers

    def test_unknown_route_is_json_404(self, client):
        res = client.get("/api/v1/nowhere")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


class TestActivityEndpoint:
    def test_admin_filters_by_action(self, client, auth_headers, admin_user, client_user):
        client.post("/api/v1/auth/logout", headers=auth_headers(client_user))

        res = client.get("/api/v1/activity?action=LOGOUT", headers=auth_headers(admin_user))
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["user_id"] == client_user.id

    def test_pagination(self, client, auth_headers, owner_user):
        for _ in range(3):
            client.get("/api/v1/auth/me", headers=auth_headers(owner_user))
        res = client.get(f"/api/v1/activity?user_id={owner_user.id}&per_page=2",
                         headers=auth_headers(owner_user))
        body = res.get_json()
        assert body["per_page"] == 2
        assert len(body["items"]) == 2
        assert body["total"] >= 3

    def test_client_forbidden(self, client, auth_headers, client_user):
        res = client.get("/api/v1/activity", headers=auth_headers(client_user))
        assert res.status_code == 403
