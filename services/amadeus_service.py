"""
Amadeus Flight Search Service
OAuth2 client-credentials token caching plus the inspiration and
cheapest-date shopping endpoints
"""
import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional
import httpx
from config import Settings, get_settings
from services.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

AUTH_ENDPOINT = "/v1/security/oauth2/token"
FLIGHT_DESTINATIONS_ENDPOINT = "/v1/shopping/flight-destinations"
FLIGHT_DATES_ENDPOINT = "/v1/shopping/flight-dates"

AMADEUS_TIMEOUT = 30.0
TOKEN_EXPIRY_MARGIN = 60


class AmadeusError(UpstreamError):
    pass


@dataclass
class FlightOption:
    origin: str
    destination: str
    departureDate: str
    price: str
    currency: str
    returnDate: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CachedToken:
    access_token: str
    expires_in: int
    obtained_at: float


class TokenCache:
    """
    One-slot access token cache.

    A token is reused while now < obtained_at + expires_in - margin. On a miss
    the fetch callable runs under the lock, so concurrent callers trigger a
    single fetch.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, margin: int = TOKEN_EXPIRY_MARGIN):
        self._clock = clock
        self._margin = margin
        self._lock = threading.Lock()
        self._token: Optional[CachedToken] = None

    def get_token(self, fetch: Callable[[], Dict[str, Any]]) -> str:
        """
        Args:
            fetch: Returns {"access_token": str, "expires_in": int}
        """
        with self._lock:
            now = self._clock()
            if self._token and now < self._token.obtained_at + self._token.expires_in - self._margin:
                return self._token.access_token

            data = fetch()
            self._token = CachedToken(
                access_token=data["access_token"],
                expires_in=int(data.get("expires_in", 0)),
                obtained_at=self._clock(),
            )
            return self._token.access_token

    def clear(self) -> None:
        with self._lock:
            self._token = None


def _parse_flight_options(payload: Dict[str, Any]) -> List[FlightOption]:
    options = []
    for item in payload.get("data") or []:
        price = item.get("price") or {}
        options.append(FlightOption(
            origin=item.get("origin", ""),
            destination=item.get("destination", ""),
            departureDate=item.get("departureDate", ""),
            returnDate=item.get("returnDate") or None,
            price=str(price.get("total", "")),
            currency=price.get("currency", ""),
        ))
    return options


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


class AmadeusClient:
    """Amadeus self-service API client"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        token_cache: Optional[TokenCache] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.AMADEUS_BASE_URL.rstrip("/")
        self.token_cache = token_cache or TokenCache()
        self._client = http_client

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            if self._client is not None:
                return self._client.request(method, url, timeout=AMADEUS_TIMEOUT, **kwargs)
            with httpx.Client(timeout=AMADEUS_TIMEOUT) as client:
                return client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Amadeus request failed: {e}")
            raise AmadeusError(f"Amadeus request failed: {e}")

    def _fetch_token(self) -> Dict[str, Any]:
        client_id = self.settings.AMADEUS_CLIENT_ID
        client_secret = self.settings.AMADEUS_CLIENT_SECRET
        if not client_id or not client_secret:
            raise AmadeusError("missing Amadeus credentials in environment")

        response = self._request(
            "POST",
            f"{self.base_url}{AUTH_ENDPOINT}",
            data={
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        if response.status_code != 200:
            raise AmadeusError(f"failed to get Amadeus token: {response.text}")
        return response.json()

    def get_access_token(self) -> str:
        return self.token_cache.get_token(self._fetch_token)

    def _search(self, endpoint: str, params: Dict[str, str]) -> List[FlightOption]:
        token = self.get_access_token()
        response = self._request(
            "GET",
            f"{self.base_url}{endpoint}",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        if response.status_code != 200:
            raise AmadeusError(f"Amadeus API error: {response.text}")
        return _parse_flight_options(response.json())

    def search_destinations(
        self,
        origin: str,
        departure_date: Optional[str] = None,
        max_price: Optional[int] = None,
        one_way: Optional[bool] = None,
        non_stop: Optional[bool] = None,
    ) -> List[FlightOption]:
        """
        Cheapest destinations reachable from an origin airport.

        Args:
            origin: IATA code, required
            departure_date: YYYY-MM-DD or a comma separated range
            max_price: Upper price bound
            one_way: Round trip unless true
            non_stop: Defaults to true
        """
        if not origin:
            raise ValidationError("origin parameter is required")

        params = {"origin": origin}
        if departure_date:
            params["departureDate"] = departure_date
        if max_price is not None:
            params["maxPrice"] = str(max_price)
        if one_way is not None:
            params["oneWay"] = _bool_param(one_way)
        params["nonStop"] = _bool_param(True if non_stop is None else non_stop)

        return self._search(FLIGHT_DESTINATIONS_ENDPOINT, params)

    def search_cheapest_dates(
        self,
        origin: str,
        destination: str,
        departure_date: Optional[str] = None,
        duration: Optional[int] = None,
        max_price: Optional[int] = None,
        one_way: Optional[bool] = None,
        non_stop: Optional[bool] = None,
    ) -> List[FlightOption]:
        """Cheapest travel dates between two airports."""
        if not origin or not destination:
            raise ValidationError("origin and destination parameters are required")

        params = {"origin": origin, "destination": destination}
        if departure_date:
            params["departureDate"] = departure_date
        if duration is not None:
            params["duration"] = str(duration)
        if max_price is not None:
            params["maxPrice"] = str(max_price)
        if one_way is not None:
            params["oneWay"] = _bool_param(one_way)
        params["nonStop"] = _bool_param(True if non_stop is None else non_stop)

        return self._search(FLIGHT_DATES_ENDPOINT, params)


# Global instance (singleton pattern); shares one token cache per process
_amadeus_client_instance = None

def get_amadeus_client() -> AmadeusClient:
    global _amadeus_client_instance
    if _amadeus_client_instance is None:
        _amadeus_client_instance = AmadeusClient()
    return _amadeus_client_instance
