"""
Tests for the remote flag service client.
"""

import httpx
import pytest
from structlog.testing import capture_logs

from featureflags.core.config import FeatureSettings
from featureflags.core.features import (
    ConfigurationError,
    FeatureStatus,
    HttpFeatureFlagClient,
    RequirementType,
)


BASE_URL = "https://flags.test/api/"

WIRE_FLAGS = [
    {
        "name": "beta",
        "enabledFor": [
            {"name": "Percentage", "parameters": {"Value": "25"}},
            {"name": "Targeting", "parameters": [{"key": "Audience:Users:0", "value": "alice"}]},
        ],
        "requirementType": "All",
        "status": "Conditional",
        "allocation": None,
        "variants": [],
        "telemetry": None,
    },
    {"name": "legacy", "enabledFor": [], "requirementType": 0, "status": 1},
]


def make_client(handler, **kwargs) -> HttpFeatureFlagClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return HttpFeatureFlagClient(BASE_URL, api_key="secret", client=http, **kwargs)


@pytest.mark.asyncio
async def test_get_all_sends_api_key_and_parses():
    """GET features carries the API key header and parses the wire format."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=WIRE_FLAGS)

    definitions = await make_client(handler).get_all_feature_definitions()

    assert str(seen[0].url) == "https://flags.test/api/features"
    assert seen[0].headers["x-api-key"] == "secret"

    beta, legacy = definitions
    assert beta.requirement_type == RequirementType.ALL
    assert beta.enabled_for[0].parameters == {"Value": "25"}
    assert beta.enabled_for[1].parameters == {"Audience:Users:0": "alice"}
    assert legacy.requirement_type == RequirementType.ANY
    assert legacy.status == FeatureStatus.DISABLED


@pytest.mark.asyncio
async def test_custom_api_key_header():
    """The header name is configurable."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    await make_client(handler, api_key_header="X-Flags-Key").get_all_feature_definitions()

    assert seen[0].headers["X-Flags-Key"] == "secret"


@pytest.mark.asyncio
async def test_get_one_quotes_name():
    """GET feature/{name} escapes the name."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=WIRE_FLAGS[0])

    definition = await make_client(handler).get_feature_definition("new checkout/v2")

    assert seen[0].url.raw_path == b"/api/feature/new%20checkout%2Fv2"
    assert definition.name == "beta"


@pytest.mark.asyncio
async def test_get_one_not_found():
    """A 404 means the flag does not exist."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "not found"})

    with capture_logs() as logs:
        assert await make_client(handler).get_feature_definition("ghost") is None

    assert logs == []


@pytest.mark.asyncio
async def test_server_error_is_logged():
    """HTTP errors are logged and return empty results."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    client = make_client(handler)

    with capture_logs() as logs:
        assert await client.get_all_feature_definitions() == []
        assert await client.get_feature_definition("beta") is None

    assert [log["event"] for log in logs] == [
        "Feature definitions fetch failed",
        "Feature definition fetch failed",
    ]


@pytest.mark.asyncio
async def test_invalid_body_is_logged():
    """Undecodable responses return empty results."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    with capture_logs() as logs:
        assert await make_client(handler).get_all_feature_definitions() == []

    assert logs[0]["event"] == "Feature definitions response is invalid"


@pytest.mark.asyncio
async def test_timeout_is_logged_as_warning():
    """Transport timeouts are warnings."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with capture_logs() as logs:
        assert await make_client(handler).get_all_feature_definitions() == []

    assert logs[0]["log_level"] == "warning"


# ============ Configuration ============


def test_from_settings_requires_endpoint_and_key():
    """Both endpoint and key must be configured."""
    with pytest.raises(ConfigurationError):
        HttpFeatureFlagClient.from_settings(FeatureSettings(provider="http", api_key="k"))

    with pytest.raises(ConfigurationError):
        HttpFeatureFlagClient.from_settings(FeatureSettings(provider="http", api_base_endpoint=BASE_URL, api_key=" "))


@pytest.mark.asyncio
async def test_from_settings():
    """Settings configure base URL, header and timeout."""
    client = HttpFeatureFlagClient.from_settings(
        FeatureSettings(
            provider="http",
            api_base_endpoint=BASE_URL,
            api_key="k",
            api_key_header="x-key",
            request_timeout=3,
        )
    )

    assert client.base_url == BASE_URL
    await client.aclose()
