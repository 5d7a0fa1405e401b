"""Tests for the generate-fill request pipeline."""

import json
from typing import Sequence

import pytest

from conftest import SERVER_KEY, ScriptedProvider, build_pipeline, make_body, success_for
from formfill.app.providers.retry import AttemptResult
from formfill.app.schemas import FormField

BUSY = AttemptResult.retryable("OpenAI API error: 500", 500)


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_key_is_unauthorized(self, sleep):
        """Scenario A: no credential."""
        provider = ScriptedProvider([success_for(2)])
        outcome = await build_pipeline(provider, sleep).handle(None, make_body(2))

        assert outcome.status_code == 401
        assert outcome.body["success"] is False
        assert "Missing API key" in outcome.body["error"]
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_invalid_key_is_unauthorized(self, sleep):
        provider = ScriptedProvider([success_for(2)])
        outcome = await build_pipeline(provider, sleep).handle("wrong", make_body(2))

        assert outcome.status_code == 401
        assert outcome.body == {"success": False, "error": "Unauthorized: Invalid API key"}

    @pytest.mark.asyncio
    async def test_rejected_credentials_do_not_consume_quota(self, sleep):
        pipeline = build_pipeline(ScriptedProvider([success_for(2)]), sleep, max_requests=1)

        await pipeline.handle(None, make_body(2))
        await pipeline.handle("wrong", make_body(2))
        outcome = await pipeline.handle(SERVER_KEY, make_body(2))

        assert outcome.status_code == 200


class TestAdmission:
    @pytest.mark.asyncio
    async def test_rate_limited_after_max_requests(self, sleep):
        pipeline = build_pipeline(ScriptedProvider([success_for(2)]), sleep, max_requests=2)

        for _ in range(2):
            assert (await pipeline.handle(SERVER_KEY, make_body(2))).status_code == 200

        outcome = await pipeline.handle(SERVER_KEY, make_body(2))
        assert outcome.status_code == 429
        assert outcome.body == {
            "success": False,
            "error": "Rate limit exceeded. Please try again later.",
        }
        assert outcome.headers["X-RateLimit-Remaining"] == "0"
        assert int(outcome.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_admission_runs_before_validation(self, sleep):
        pipeline = build_pipeline(ScriptedProvider([success_for(2)]), sleep, max_requests=1)

        assert (await pipeline.handle(SERVER_KEY, b"{not json")).status_code == 400
        assert (await pipeline.handle(SERVER_KEY, make_body(2))).status_code == 429

    @pytest.mark.asyncio
    async def test_success_carries_rate_limit_headers(self, sleep):
        pipeline = build_pipeline(ScriptedProvider([success_for(2)]), sleep, max_requests=5)
        outcome = await pipeline.handle(SERVER_KEY, make_body(2))

        assert outcome.headers["X-RateLimit-Limit"] == "5"
        assert outcome.headers["X-RateLimit-Remaining"] == "4"
        assert "Retry-After" not in outcome.headers


class TestValidation:
    @pytest.mark.asyncio
    async def test_empty_field_list(self, sleep):
        """Scenario B: zero fields."""
        provider = ScriptedProvider([success_for(2)])
        body = json.dumps({"fields": []}).encode()
        outcome = await build_pipeline(provider, sleep).handle(SERVER_KEY, body)

        assert outcome.status_code == 400
        assert outcome.body["success"] is False
        assert "at least 1 field" in outcome.body["error"]
        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_too_many_fields(self, sleep):
        """Scenario C: 51 fields."""
        outcome = await build_pipeline(ScriptedProvider([success_for(2)]), sleep).handle(
            SERVER_KEY, make_body(51)
        )

        assert outcome.status_code == 400
        assert "at most 50 fields" in outcome.body["error"]

    @pytest.mark.asyncio
    async def test_fifty_fields_is_accepted(self, sleep):
        outcome = await build_pipeline(ScriptedProvider([success_for(50)]), sleep).handle(
            SERVER_KEY, make_body(50)
        )
        assert outcome.status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_json(self, sleep):
        outcome = await build_pipeline(ScriptedProvider([success_for(2)]), sleep).handle(
            SERVER_KEY, b"{not json"
        )

        assert outcome.status_code == 400
        assert outcome.body["error"] == "Invalid JSON in request body"

    @pytest.mark.asyncio
    async def test_missing_required_attribute(self, sleep):
        body = json.dumps({"fields": [{"name": "email", "label": "Email", "type": "email"}]})
        outcome = await build_pipeline(ScriptedProvider([success_for(2)]), sleep).handle(
            SERVER_KEY, body.encode()
        )

        assert outcome.status_code == 400
        assert outcome.body["error"].startswith("Validation error: fields.0.id:")

    @pytest.mark.asyncio
    async def test_oversized_body(self, sleep):
        pipeline = build_pipeline(ScriptedProvider([success_for(2)]), sleep, max_request_size=100)
        outcome = await pipeline.handle(SERVER_KEY, make_body(10))

        assert outcome.status_code == 400
        assert "too large" in outcome.body["error"]

    @pytest.mark.asyncio
    async def test_deeply_nested_json_is_bad_request(self, sleep):
        depth = 200_000
        pipeline = build_pipeline(ScriptedProvider([success_for(2)]), sleep, max_request_size=10**7)
        outcome = await pipeline.handle(SERVER_KEY, b"[" * depth + b"]" * depth)

        assert outcome.status_code == 400
        assert outcome.body["error"] == "Invalid JSON in request body"


class TestCachingAndInvocation:
    @pytest.mark.asyncio
    async def test_identical_shape_hits_cache(self, sleep):
        """Scenario D: the second identical request is served from cache."""
        provider = ScriptedProvider([success_for(2)])
        pipeline = build_pipeline(provider, sleep)

        first = await pipeline.handle(SERVER_KEY, make_body(2))
        second = await pipeline.handle(SERVER_KEY, make_body(2))

        assert first.status_code == second.status_code == 200
        assert first.body == second.body
        assert first.body["data"]["f0"] == {"value": "value 0", "reason": "fits"}
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_upstream_failure_exhausts_attempts(self, sleep):
        """Scenario E: upstream answers 500 on every attempt."""
        provider = ScriptedProvider([BUSY])
        pipeline = build_pipeline(provider, sleep, max_attempts=4)

        outcome = await pipeline.handle(SERVER_KEY, make_body(2))

        assert outcome.status_code == 502
        assert outcome.body["success"] is False
        assert provider.calls == 4
        assert len(pipeline.cache) == 0

    @pytest.mark.asyncio
    async def test_terminal_failure_is_bad_gateway(self, sleep):
        provider = ScriptedProvider([AttemptResult.terminal("OpenAI API error: 400", 400)])
        outcome = await build_pipeline(provider, sleep).handle(SERVER_KEY, make_body(2))

        assert outcome.status_code == 502
        assert provider.calls == 1
        assert "400" not in outcome.body["error"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic_500(self, sleep):
        class Broken(ScriptedProvider):
            async def attempt(self, fields: Sequence[FormField]) -> AttemptResult:
                raise RuntimeError("database password is hunter2")

        outcome = await build_pipeline(Broken([]), sleep).handle(SERVER_KEY, make_body(2))

        assert outcome.status_code == 500
        assert outcome.body == {"success": False, "error": "An unexpected error occurred"}
