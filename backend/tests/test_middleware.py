"""
Cinedex Backend: Middleware & Cross-Cutting Behaviour Tests
=============================================================

What we test:
    ✅ Healthcheck and request IDs
    ✅ Recovery turns unexpected exceptions into a generic 500 + Connection: close
    ✅ 404 / 405 envelopes
    ✅ Authorization header parsing and Vary: Authorization
    ✅ Rate limiting per client IP
    ✅ CORS for trusted and untrusted origins, including preflight
    ✅ Request counters at /debug/vars
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from cinedex import __version__
from cinedex.exceptions import SERVER_ERROR_MESSAGE
from cinedex.main import create_app
from cinedex.services.rate_limiter import RateLimiter

TRUSTED = "http://localhost:9000"


class TestHealthcheck:
    @pytest.mark.asyncio
    async def test_healthcheck(self, test_client):
        response = await test_client.get("/v1/healthcheck")
        assert response.status_code == 200
        assert response.json() == {
            "status": "available",
            "system_info": {"environment": "development", "version": __version__},
        }

    @pytest.mark.asyncio
    async def test_request_id_generated(self, test_client):
        response = await test_client.get("/v1/healthcheck")
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get("/v1/healthcheck", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


class TestErrorEnvelopes:
    @pytest.mark.asyncio
    async def test_unknown_route(self, test_client):
        response = await test_client.get("/v1/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "the requested resource could not be found"}

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, test_client):
        response = await test_client.put("/v1/healthcheck")
        assert response.status_code == 405
        assert response.json() == {"error": "the PUT method is not supported for this resource"}
        assert "GET" in response.headers["Allow"]

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, app, test_client):
        async def boom():
            raise RuntimeError("secret internal detail")

        app.add_api_route("/boom", boom)
        response = await test_client.get("/boom")

        assert response.status_code == 500
        assert response.json() == {"error": SERVER_ERROR_MESSAGE}
        assert response.headers["Connection"] == "close"
        assert "secret" not in response.text


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_vary_authorization(self, test_client):
        response = await test_client.get("/v1/healthcheck")
        assert "Authorization" in response.headers["Vary"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "header",
        ["Token abc", "Bearer", "Bearer a b", "bearer " + "A" * 26, "Bearer short", "Bearer " + "A" * 26],
    )
    async def test_rejected_headers(self, test_client, header):
        response = await test_client.get("/v1/healthcheck", headers={"Authorization": header})

        assert response.status_code == 401
        assert response.json() == {"error": "invalid or missing authentication token"}
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert "Authorization" in response.headers["Vary"]

    @pytest.mark.asyncio
    async def test_valid_token(self, test_client, auth_headers):
        headers = await auth_headers()
        response = await test_client.get("/v1/healthcheck", headers=headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_expired_token(self, test_client, memory_store, auth_headers):
        headers = await auth_headers()
        for token in memory_store.tokens.rows.values():
            token.expiry = datetime.now(timezone.utc) - timedelta(seconds=1)

        response = await test_client.get("/v1/movies", headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "invalid or missing authentication token"}
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestRateLimit:
    def _app(self, memory_store, mailer, trust_proxy_headers=False):
        app = create_app(store=memory_store, mailer=mailer, rate_limiter=RateLimiter(rps=0.001, burst=2))
        app.state.trust_proxy_headers = trust_proxy_headers
        return app

    @pytest.mark.asyncio
    async def test_burst_exceeded(self, memory_store, mailer):
        transport = ASGITransport(app=self._app(memory_store, mailer))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [(await client.get("/v1/healthcheck")).status_code for _ in range(3)]
            denied = await client.get("/v1/healthcheck")

        assert statuses == [200, 200, 429]
        assert denied.json() == {"error": "rate limit exceeded"}

    @pytest.mark.asyncio
    async def test_forwarded_headers_ignored_by_default(self, memory_store, mailer):
        transport = ASGITransport(app=self._app(memory_store, mailer))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [
                (await client.get("/v1/healthcheck", headers={"X-Forwarded-For": f"203.0.113.{n}"})).status_code
                for n in range(3)
            ]

        assert statuses == [200, 200, 429]

    @pytest.mark.asyncio
    async def test_forwarded_headers_behind_trusted_proxy(self, memory_store, mailer):
        transport = ASGITransport(app=self._app(memory_store, mailer, trust_proxy_headers=True))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [(await client.get("/v1/healthcheck")).status_code for _ in range(3)]
            other = await client.get("/v1/healthcheck", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
            real_ip = await client.get("/v1/healthcheck", headers={"X-Real-IP": "198.51.100.4"})

        assert statuses == [200, 200, 429]
        assert other.status_code == 200
        assert real_ip.status_code == 200

    @pytest.mark.asyncio
    async def test_disabled_limiter_allows_everything(self, test_client):
        statuses = {(await test_client.get("/v1/healthcheck")).status_code for _ in range(10)}
        assert statuses == {200}


class TestCors:
    @pytest.mark.asyncio
    async def test_trusted_origin(self, test_client):
        response = await test_client.get("/v1/healthcheck", headers={"Origin": TRUSTED})
        assert response.headers["Access-Control-Allow-Origin"] == TRUSTED
        assert "Origin" in response.headers["Vary"]

    @pytest.mark.asyncio
    async def test_untrusted_origin(self, test_client):
        response = await test_client.get("/v1/healthcheck", headers={"Origin": "http://evil.test"})
        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers

    @pytest.mark.asyncio
    async def test_preflight(self, test_client):
        response = await test_client.options(
            "/v1/movies/1",
            headers={
                "Origin": TRUSTED,
                "Access-Control-Request-Method": "PATCH",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == TRUSTED
        assert "PATCH" in response.headers["Access-Control-Allow-Methods"]

    @pytest.mark.asyncio
    async def test_preflight_with_expected_version_header(self, test_client):
        response = await test_client.options(
            "/v1/movies/1",
            headers={
                "Origin": TRUSTED,
                "Access-Control-Request-Method": "PATCH",
                "Access-Control-Request-Headers": "Authorization, Content-Type, X-Expected-Version",
            },
        )
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == TRUSTED
        assert "x-expected-version" in response.headers["Access-Control-Allow-Headers"].lower()

    @pytest.mark.asyncio
    async def test_preflight_from_untrusted_origin(self, test_client):
        response = await test_client.options(
            "/v1/movies/1",
            headers={"Origin": "http://evil.test", "Access-Control-Request-Method": "PATCH"},
        )
        assert response.status_code == 400
        assert "Access-Control-Allow-Origin" not in response.headers


class TestDebugVars:
    @pytest.mark.asyncio
    async def test_counters(self, test_client):
        await test_client.get("/v1/healthcheck")
        await test_client.get("/v1/nope")

        response = await test_client.get("/debug/vars")
        body = response.json()

        assert response.status_code == 200
        assert body["version"] == __version__
        assert body["database"] == {"backend": "memory"}
        assert body["background_tasks"] == 0

        metrics = body["metrics"]
        # The /debug/vars request itself is counted as received but not yet sent
        assert metrics["total_requests_received"] == 3
        assert metrics["total_responses_sent"] == 2
        assert metrics["total_responses_sent_by_status"] == {"200": 1, "404": 1}
