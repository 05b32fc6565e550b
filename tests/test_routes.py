"""
Tests for API routes.

Exercises the HTTP surface end to end over SQLite with the scripted model.
"""

from uuid import uuid4

from fastapi import FastAPI
from httpx import AsyncClient

from app.api.dependencies import get_rate_limiter
from app.models.domain import RateLimitDecision

from conftest import FakeModel, artifact_data

BRAND = "A calm yoga studio for busy professionals"


async def _generate(client: AsyncClient, headers: dict[str, str], tier: str = "basic") -> dict:
    response = await client.post(
        "/v1/design-systems/generate",
        json={"brand_description": BRAND, "tier": tier},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestGenerateEndpoint:
    """Tests for POST /v1/design-systems/generate."""

    async def test_requires_user(self, async_client: AsyncClient):
        response = await async_client.post(
            "/v1/design-systems/generate", json={"brand_description": BRAND}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    async def test_generate(self, async_client: AsyncClient, user_headers):
        data = await _generate(async_client, user_headers)

        assert data["credits_remaining"] == 4
        assert data["version"]["version"] == 1
        assert data["version"]["parent_version_id"] is None
        assert data["artifact"]["colors"]["primary"]["main"] == "#1D4ED8"
        assert data["artifact"]["accessibility"]["accent_on_white"]["aa"] is False

    async def test_insufficient_credits(self, async_client: AsyncClient, user_headers):
        await _generate(async_client, user_headers, tier="professional")

        response = await async_client.post(
            "/v1/design-systems/generate",
            json={"brand_description": BRAND, "tier": "professional"},
            headers=user_headers,
        )

        assert response.status_code == 402
        body = response.json()
        assert body["error"] == "InsufficientCredits"
        assert body["balance"] == 2
        assert body["required"] == 3

    async def test_malformed_body(self, async_client: AsyncClient, user_headers):
        response = await async_client.post(
            "/v1/design-systems/generate", json={"tier": "basic"}, headers=user_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"
        assert response.json()["field"] == "brand_description"

    async def test_short_description(
        self, async_client: AsyncClient, user_headers, fake_model: FakeModel
    ):
        response = await async_client.post(
            "/v1/design-systems/generate",
            json={"brand_description": "tiny"},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert response.json()["field"] == "brand_description"
        assert fake_model.calls == 0

    async def test_unknown_tier(self, async_client: AsyncClient, user_headers):
        response = await async_client.post(
            "/v1/design-systems/generate",
            json={"brand_description": BRAND, "tier": "enterprise"},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert response.json()["field"] == "tier"

    async def test_timeout(self, async_client: AsyncClient, user_headers, fake_model: FakeModel):
        fake_model.delay = 1.0

        response = await async_client.post(
            "/v1/design-systems/generate",
            json={"brand_description": BRAND},
            headers=user_headers,
        )

        assert response.status_code == 408
        assert response.json()["error"] == "GenerationTimeout"
        credits = await async_client.get("/v1/credits", headers=user_headers)
        assert credits.json()["balance"] == 5

    async def test_invalid_model_reply(
        self, async_client: AsyncClient, user_headers, fake_model: FakeModel
    ):
        fake_model.replies = ["I would rather not."]

        response = await async_client.post(
            "/v1/design-systems/generate",
            json={"brand_description": BRAND},
            headers=user_headers,
        )

        assert response.status_code == 502
        assert response.json()["error"] == "InvalidAIResponse"

    async def test_rate_limited(self, app: FastAPI, async_client: AsyncClient, user_headers):
        class DenyAll:
            async def check(self, key: str) -> RateLimitDecision:
                return RateLimitDecision(allowed=False, reset_at=1_700_000_000.0)

        app.dependency_overrides[get_rate_limiter] = DenyAll

        response = await async_client.post(
            "/v1/design-systems/generate",
            json={"brand_description": BRAND},
            headers=user_headers,
        )

        assert response.status_code == 429
        assert response.json()["reset_at"] == 1_700_000_000.0


class TestRefineEndpoint:
    """Tests for POST /v1/design-systems/refine."""

    async def test_refine_by_version(self, async_client: AsyncClient, user_headers):
        generated = await _generate(async_client, user_headers)

        response = await async_client.post(
            "/v1/design-systems/refine",
            json={
                "parent_version_id": generated["version"]["id"],
                "instruction": "keep the primary color and improve accessibility",
            },
            headers=user_headers,
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["degraded"] is False
        assert data["version"]["version"] == 2
        assert data["version"]["parent_version_id"] == generated["version"]["id"]
        assert data["credits_remaining"] == 3
        assert data["refined_artifact"]["colors"]["primary"] == generated["artifact"]["colors"]["primary"]
        assert data["refined_artifact"]["accessibility"]["accent_on_white"]["aa"] is True
        assert data["comparison"]["accessibility_improved"] is True

    async def test_refine_inline_with_constraints(self, async_client: AsyncClient, user_headers):
        response = await async_client.post(
            "/v1/design-systems/refine",
            json={
                "previous_artifact": artifact_data(),
                "constraints": {"keep_typography": True, "specific_changes": ["larger text"]},
            },
            headers=user_headers,
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["skipped_changes"] == ["larger text (locked)"]
        assert data["comparison"]["typography_changed"] is False

    async def test_requires_constraints_or_instruction(
        self, async_client: AsyncClient, user_headers
    ):
        response = await async_client.post(
            "/v1/design-systems/refine",
            json={"previous_artifact": artifact_data()},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    async def test_unknown_parent(self, async_client: AsyncClient, user_headers):
        response = await async_client.post(
            "/v1/design-systems/refine",
            json={"parent_version_id": str(uuid4()), "instruction": "make it darker"},
            headers=user_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"


class TestCompareEndpoint:
    """Tests for POST /v1/design-systems/compare."""

    async def test_compare_is_free(self, async_client: AsyncClient, user_headers):
        current = artifact_data(components=[{"name": "Button"}, {"name": "Modal"}])

        response = await async_client.post(
            "/v1/design-systems/compare",
            json={"previous": artifact_data(), "current": current},
            headers=user_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["components_added"] == ["Modal"]
        assert data["components_removed"] == ["Card"]
        assert data["changed_fields"] == ["components"]
        credits = await async_client.get("/v1/credits", headers=user_headers)
        assert credits.json()["balance"] == 5


class TestVersionEndpoints:
    """Tests for the version history endpoints."""

    async def test_list_detail_and_chain(self, async_client: AsyncClient, user_headers):
        generated = await _generate(async_client, user_headers)
        refined = await async_client.post(
            "/v1/design-systems/refine",
            json={
                "parent_version_id": generated["version"]["id"],
                "constraints": {"specific_changes": ["make darker"]},
            },
            headers=user_headers,
        )
        refined_id = refined.json()["version"]["id"]

        listing = await async_client.get("/v1/design-systems/versions", headers=user_headers)
        assert listing.status_code == 200
        assert listing.json()["total"] == 2
        assert [v["version"] for v in listing.json()["versions"]] == [2, 1]

        detail = await async_client.get(
            f"/v1/design-systems/versions/{refined_id}", headers=user_headers
        )
        assert detail.status_code == 200
        assert detail.json()["artifact"]["parent_id"] == generated["artifact"]["id"]
        assert detail.json()["changes"]

        chain = await async_client.get(
            f"/v1/design-systems/versions/{refined_id}/chain", headers=user_headers
        )
        assert [v["id"] for v in chain.json()] == [refined_id, generated["version"]["id"]]

    async def test_other_users_version_hidden(self, async_client: AsyncClient, user_headers):
        generated = await _generate(async_client, user_headers)
        response = await async_client.get(
            f"/v1/design-systems/versions/{generated['version']['id']}",
            headers={"X-User-ID": "someone-else"},
        )
        assert response.status_code == 404

    async def test_missing_version(self, async_client: AsyncClient, user_headers):
        response = await async_client.get(
            f"/v1/design-systems/versions/{uuid4()}", headers=user_headers
        )
        assert response.status_code == 404


class TestExportEndpoint:
    """Tests for GET /v1/design-systems/versions/{id}/export."""

    async def test_css_default(self, async_client: AsyncClient, user_headers):
        generated = await _generate(async_client, user_headers)
        response = await async_client.get(
            f"/v1/design-systems/versions/{generated['version']['id']}/export",
            headers=user_headers,
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/css")
        assert response.headers["x-credits-charged"] == "0"
        assert "x-credits-remaining" not in response.headers
        assert "design-tokens.css" in response.headers["content-disposition"]
        assert ":root {" in response.text

    async def test_figma_is_charged(self, async_client: AsyncClient, user_headers):
        generated = await _generate(async_client, user_headers)
        response = await async_client.get(
            f"/v1/design-systems/versions/{generated['version']['id']}/export",
            params={"format": "figma"},
            headers=user_headers,
        )
        assert response.status_code == 200
        assert response.headers["x-credits-charged"] == "2"
        assert response.headers["x-credits-remaining"] == "2"
        assert response.json()["colors"]["primary"]["$type"] == "color"

        credits = await async_client.get("/v1/credits", headers=user_headers)
        assert credits.json()["balance"] == 2

    async def test_unknown_format(self, async_client: AsyncClient, user_headers):
        generated = await _generate(async_client, user_headers)
        response = await async_client.get(
            f"/v1/design-systems/versions/{generated['version']['id']}/export",
            params={"format": "sketch"},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    async def test_missing_version(self, async_client: AsyncClient, user_headers):
        response = await async_client.get(
            f"/v1/design-systems/versions/{uuid4()}/export", headers=user_headers
        )
        assert response.status_code == 404


class TestCreditEndpoints:
    """Tests for balance, history and tiers."""

    async def test_free_balance(self, async_client: AsyncClient, user_headers):
        response = await async_client.get("/v1/credits", headers=user_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == 5
        assert data["unlimited"] is False
        assert data["plan"] == "free"

    async def test_team_unlimited(self, async_client: AsyncClient):
        response = await async_client.get(
            "/v1/credits", headers={"X-User-ID": "team-user", "X-User-Plan": "Team"}
        )
        assert response.json()["balance"] is None
        assert response.json()["unlimited"] is True

    async def test_invalid_plan(self, async_client: AsyncClient):
        response = await async_client.get(
            "/v1/credits", headers={"X-User-ID": "user-123", "X-User-Plan": "platinum"}
        )
        assert response.status_code == 401

    async def test_history(self, async_client: AsyncClient, user_headers):
        await _generate(async_client, user_headers)
        response = await async_client.get("/v1/credits/history", headers=user_headers)
        assert response.status_code == 200
        transactions = response.json()["transactions"]
        assert [tx["kind"] for tx in transactions] == ["deduct"]
        assert transactions[0]["balance_after"] == 4

    async def test_tiers(self, async_client: AsyncClient):
        response = await async_client.get("/v1/tiers")
        assert response.status_code == 200
        data = response.json()
        costs = {tier["name"]: tier["credit_cost"] for tier in data["tiers"]}
        assert costs == {"basic": 1, "professional": 3}
        plans = {plan["name"]: plan["credits"] for plan in data["plans"]}
        assert plans == {"free": 5, "pro": 100, "team": None}


class TestAdminEndpoints:
    """Tests for the admin credit endpoints."""

    async def test_requires_key(self, async_client: AsyncClient):
        response = await async_client.post(
            "/v1/admin/credits/user-9/add",
            json={"amount": 10},
            headers={"X-Admin-Key": "wrong"},
        )
        assert response.status_code == 401

    async def test_add_credits(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(
            "/v1/admin/credits/user-9/add",
            json={"amount": 10, "reason": "support"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["balance"] == 15

    async def test_reset(self, async_client: AsyncClient, admin_headers, user_headers):
        await _generate(async_client, user_headers)

        response = await async_client.post(
            "/v1/admin/credits/user-123/reset", json={"plan": "pro"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["plan"] == "pro"
        assert response.json()["balance"] == 100


class TestHealthAndMetrics:
    """Tests for operational endpoints."""

    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"

    async def test_request_id_echoed(self, async_client: AsyncClient):
        response = await async_client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    async def test_metrics(self, async_client: AsyncClient):
        response = await async_client.get("/metrics")
        assert response.status_code == 200
        assert "forge_http_requests_total" in response.text
