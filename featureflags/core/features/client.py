"""
Remote flag service client.

Fetches definitions from another deployment of this service:

    GET {base}/features        -> [definition, ...]
    GET {base}/feature/{name}  -> definition | 404

Requests carry the API key header. Failures are logged and turned into
empty results; nothing is cached.

Usage:
    client = HttpFeatureFlagClient.from_settings(settings.features)
    definitions = await client.get_all_feature_definitions()
    await client.aclose()
"""

from urllib.parse import quote

import httpx
import structlog

from .interfaces import ConfigurationError, FeatureDefinition

logger = structlog.get_logger()


class HttpFeatureFlagClient:
    """HTTP client for the feature definition endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_key_header: str = "x-api-key",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url
        self._headers = {api_key_header: api_key}
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, features) -> "HttpFeatureFlagClient":
        """
        Build a client from FeatureSettings.

        Raises:
            ConfigurationError: endpoint or API key is not configured
        """
        if not features.api_base_endpoint or not features.api_base_endpoint.strip():
            raise ConfigurationError("FEATURE_API_BASE_ENDPOINT is not configured.")
        if not features.api_key or not features.api_key.strip():
            raise ConfigurationError("FEATURE_API_KEY is not configured.")

        return cls(
            base_url=features.api_base_endpoint,
            api_key=features.api_key,
            api_key_header=features.api_key_header,
            timeout=features.request_timeout,
        )

    async def get_all_feature_definitions(self) -> list[FeatureDefinition]:
        """Fetch all definitions. Returns [] on any failure."""
        try:
            response = await self._client.get("features", headers=self._headers, timeout=self._timeout)
            response.raise_for_status()
            return [FeatureDefinition.from_wire(item) for item in response.json()]
        except httpx.TimeoutException:
            logger.warning("Feature definitions fetch timed out", base_url=self.base_url)
            return []
        except httpx.HTTPError as e:
            logger.error("Feature definitions fetch failed", base_url=self.base_url, error=str(e))
            return []
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error("Feature definitions response is invalid", base_url=self.base_url, error=str(e))
            return []

    async def get_feature_definition(self, name: str) -> FeatureDefinition | None:
        """Fetch one definition. Returns None when unknown or on any failure."""
        try:
            response = await self._client.get(
                f"feature/{quote(name, safe='')}",
                headers=self._headers,
                timeout=self._timeout,
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return FeatureDefinition.from_wire(response.json())
        except httpx.TimeoutException:
            logger.warning("Feature definition fetch timed out", base_url=self.base_url, feature=name)
            return None
        except httpx.HTTPError as e:
            logger.error("Feature definition fetch failed", base_url=self.base_url, feature=name, error=str(e))
            return None
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(
                "Feature definition response is invalid",
                base_url=self.base_url,
                feature=name,
                error=str(e),
            )
            return None

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
