"""
Provider HTTP client.
Probes the candidate API endpoints of an IPTV provider in a fixed order.
"""
import httpx
import logging
from typing import Optional

from pydantic import BaseModel, Field

from iptv_catalog.config import get_settings
from iptv_catalog.errors import AllEndpointsFailed, ParseError, TransportError
from iptv_catalog.models.catalog import KIND_LIVE, KIND_MOVIE, KIND_SERIES
from iptv_catalog.services.format_detector import ClassifiedPayload, detect_format
from iptv_catalog.services.normalizer import base_server_url

logger = logging.getLogger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_TRANSPORT_FAILURE = "transport_failure"
OUTCOME_PARSE_FAILURE = "parse_failure"


class ProbeDescriptor(BaseModel):
    """One candidate endpoint."""
    name: str
    path: str
    params: dict[str, str] = Field(default_factory=dict)
    kind: str = KIND_LIVE


class ProbeOutcome(BaseModel):
    """Result of one request against a candidate endpoint."""
    probe: ProbeDescriptor
    status: str
    url: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    payload: Optional[ClassifiedPayload] = None

    @property
    def ok(self) -> bool:
        return self.status == OUTCOME_SUCCESS


PANEL_PROBE = ProbeDescriptor(name="panel", path="/api/panel_api.php")
PLAYER_LIVE_STREAMS_PROBE = ProbeDescriptor(
    name="player_live_streams", path="/player_api.php", params={"action": "get_live_streams"}
)
PLAYER_LIVE_CATEGORIES_PROBE = ProbeDescriptor(
    name="player_live_categories", path="/player_api.php", params={"action": "get_live_categories"}
)
M3U_PROBE = ProbeDescriptor(name="m3u_plus", path="/get.php", params={"type": "m3u_plus"})

# Tried in this order; the first usable answer wins
PROBE_ORDER = (
    PANEL_PROBE,
    PLAYER_LIVE_STREAMS_PROBE,
    PLAYER_LIVE_CATEGORIES_PROBE,
    M3U_PROBE,
)

# Per-kind (categories, streams) endpoints of the player dialect
PLAYER_KIND_ENDPOINTS = {
    KIND_MOVIE: (
        ProbeDescriptor(name="player_vod_categories", path="/player_api.php",
                        params={"action": "get_vod_categories"}, kind=KIND_MOVIE),
        ProbeDescriptor(name="player_vod_streams", path="/player_api.php",
                        params={"action": "get_vod_streams"}, kind=KIND_MOVIE),
    ),
    KIND_SERIES: (
        ProbeDescriptor(name="player_series_categories", path="/player_api.php",
                        params={"action": "get_series_categories"}, kind=KIND_SERIES),
        ProbeDescriptor(name="player_series", path="/player_api.php",
                        params={"action": "get_series"}, kind=KIND_SERIES),
    ),
}


def mask_credentials(url: httpx.URL) -> str:
    """Render a URL for logging with the password hidden."""
    if "password" in url.params:
        url = url.copy_set_param("password", "***")
    return str(url)


class ProviderClient:
    """Fetch and classify provider responses."""

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = base_server_url(server_url)
        self.username = username
        self.password = password
        self.timeout = settings.request_timeout_seconds
        self.headers = {"User-Agent": settings.user_agent, "Accept": "*/*"}
        self.transport = transport

    def _url_for(self, probe: ProbeDescriptor) -> httpx.URL:
        params = {"username": self.username, "password": self.password, **probe.params}
        return httpx.URL(f"{self.base_url}{probe.path}", params=params)

    async def _get(self, url: httpx.URL) -> httpx.Response:
        """
        GET a URL.

        Raises:
            TransportError: connection failure or non-success status
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise TransportError(f"Error connecting: {e}") from e

        if not response.is_success:
            raise TransportError(f"HTTP {response.status_code}", response.status_code)
        return response

    async def fetch(self, probe: ProbeDescriptor) -> ProbeOutcome:
        """Request one endpoint and classify the body. Never raises for provider errors."""
        url = self._url_for(probe)
        display_url = mask_credentials(url)
        logger.info(f"Trying API endpoint: {display_url}")

        try:
            response = await self._get(url)
        except TransportError as e:
            logger.warning(f"Failed to fetch {display_url}: {e}")
            return ProbeOutcome(
                probe=probe,
                status=OUTCOME_TRANSPORT_FAILURE,
                url=display_url,
                status_code=e.status_code,
                error=str(e),
            )

        try:
            payload = detect_format(response.text, display_url)
        except ParseError as e:
            logger.warning(f"Failed to parse response from {display_url}: {e}")
            return ProbeOutcome(
                probe=probe,
                status=OUTCOME_PARSE_FAILURE,
                url=display_url,
                status_code=response.status_code,
                error=str(e),
            )

        logger.info(f"Successfully fetched {payload.format.value} payload from {display_url}")
        return ProbeOutcome(
            probe=probe,
            status=OUTCOME_SUCCESS,
            url=display_url,
            status_code=response.status_code,
            payload=payload,
        )

    async def probe(self, probes: tuple[ProbeDescriptor, ...] = PROBE_ORDER) -> ProbeOutcome:
        """
        Try each candidate in order and return the first successful outcome.

        Raises:
            AllEndpointsFailed: every candidate failed
        """
        outcomes = []
        for probe in probes:
            outcome = await self.fetch(probe)
            if outcome.ok:
                return outcome
            outcomes.append(outcome)
        raise AllEndpointsFailed(outcomes)
