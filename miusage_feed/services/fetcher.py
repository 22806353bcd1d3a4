"""HTTP client for the miusage challenge endpoint.

The ONLY place that talks to the upstream API. Every failure is mapped to a
``FetchError`` subclass; nothing is retried here.
"""

import json
import logging

import httpx

from miusage_feed.errors import HttpStatusError, ParseError, SchemaError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class Fetcher:
    """Fetch and validate the JSON payload from a single endpoint.

    Args:
        endpoint: URL to GET.
        timeout:  Transport deadline in seconds.
        client:   Optional ``httpx.Client`` to reuse (tests inject one backed
                  by ``httpx.MockTransport``). Without it, a short-lived
                  client is opened per fetch.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    def fetch(self) -> dict | list:
        """GET the endpoint and return the decoded aggregate.

        Raises:
            TransportError: request could not be sent, connection failed or timed out.
            HttpStatusError: status code other than 200.
            ParseError: body could not be decoded or is not valid JSON.
            SchemaError: JSON decoded to something other than an object or array.
        """
        logger.info("Fetching %s", self.endpoint)
        response = self._get()

        if response.status_code != 200:
            logger.warning("API returned status %d for %s", response.status_code, self.endpoint)
            raise HttpStatusError(response.status_code)

        try:
            data = json.loads(response.content)
        except (ValueError, RecursionError) as e:
            raise ParseError(f"Failed to parse API response: {e}") from e

        if not isinstance(data, (dict, list)):
            raise SchemaError()

        return data

    def _get(self) -> httpx.Response:
        headers = {"Accept": "application/json"}
        try:
            if self._client is not None:
                return self._client.get(self.endpoint, headers=headers, timeout=self.timeout)
            with httpx.Client(timeout=self.timeout, verify=True) as client:
                return client.get(self.endpoint, headers=headers)
        except httpx.DecodingError as e:
            logger.warning("API response from %s could not be decoded: %s", self.endpoint, e)
            raise ParseError(f"Failed to parse API response: {e}") from e
        except httpx.RequestError as e:
            logger.warning("API request to %s failed: %s", self.endpoint, e)
            raise TransportError(f"Failed to fetch data from API: {e}") from e
        except httpx.InvalidURL as e:
            raise TransportError(f"Failed to fetch data from API: {e}") from e
