"""
Amazon Product Advertising API (PA-API 5) Service
Product search with SigV4-signed requests, affiliate URLs and a TTL cache
"""
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote_plus
import httpx
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from config import Settings, get_settings
from services.errors import UpstreamError

logger = logging.getLogger(__name__)

PAAPI_SERVICE = "ProductAdvertisingAPI"
PAAPI_TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.SearchItems"
AMAZON_TIMEOUT = 10.0
CACHE_TTL_SECONDS = 24 * 60 * 60

# Category keyword -> PA-API SearchIndex, first match wins
CATEGORY_SEARCH_INDEXES = [
    (("book",), "Books"),
    (("electronic", "tech", "gadget"), "Electronics"),
    (("kitchen", "home"), "HomeAndKitchen"),
    (("toy", "game"), "ToysAndGames"),
    (("sport", "outdoor"), "SportsAndOutdoors"),
    (("beauty", "personal"), "Beauty"),
    (("fashion", "cloth"), "Fashion"),
    (("food", "gourmet"), "GroceryAndGourmetFood"),
]


class AmazonAPIError(UpstreamError):
    pass


@dataclass
class AmazonRegionConfig:
    partner_tag: str
    host: str
    region: str
    marketplace: str


@dataclass
class AmazonProduct:
    asin: str
    title: str
    affiliate_url: str
    price: str = ""
    currency_code: str = ""
    image_url: str = ""


def map_category_to_search_index(category: Optional[str]) -> str:
    category_lower = (category or "").lower()
    for keywords, search_index in CATEGORY_SEARCH_INDEXES:
        if any(keyword in category_lower for keyword in keywords):
            return search_index
    return "All"


def map_language_to_region(language: Optional[str]) -> str:
    if (language or "").lower() in ("fr", "fr-fr", "french"):
        return "fr"
    return "us"


def build_search_query(name: str, category: Optional[str]) -> str:
    """Gift name, plus its category unless the name already mentions it."""
    if category and category.lower() not in name.lower():
        return f"{name} {category}"
    return name


class AmazonService:
    """PA-API client; disabled (search URLs only) unless fully configured"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.access_key = self.settings.AMAZON_ACCESS_KEY
        self.secret_key = self.settings.AMAZON_SECRET_KEY
        self.configs: Dict[str, AmazonRegionConfig] = {}

        if self.settings.AMAZON_PARTNER_TAG_US:
            self.configs["us"] = AmazonRegionConfig(
                partner_tag=self.settings.AMAZON_PARTNER_TAG_US,
                host="webservices.amazon.com",
                region="us-east-1",
                marketplace="www.amazon.com",
            )
        if self.settings.AMAZON_PARTNER_TAG_FR:
            self.configs["fr"] = AmazonRegionConfig(
                partner_tag=self.settings.AMAZON_PARTNER_TAG_FR,
                host="webservices.amazon.fr",
                region="eu-west-1",
                marketplace="www.amazon.fr",
            )

        self.enabled = bool(self.settings.AMAZON_API_ENABLED and self.access_key and self.secret_key)
        self._client = http_client
        self._clock = clock
        self._cache: Dict[str, Tuple[List[AmazonProduct], float]] = {}
        self._cache_lock = threading.Lock()

    def is_enabled(self) -> bool:
        return self.enabled and len(self.configs) > 0

    def get_config(self, region: str) -> Optional[AmazonRegionConfig]:
        """Config for a region, falling back to us, then to any configured region."""
        if region in self.configs:
            return self.configs[region]
        if "us" in self.configs:
            return self.configs["us"]
        for config in self.configs.values():
            return config
        return None

    def get_partner_tag(self, region: str) -> str:
        config = self.get_config(region)
        return config.partner_tag if config else ""

    # ============ URLS ============

    def generate_search_url(self, query: str, region: str) -> str:
        config = self.get_config(region)
        if config is None:
            return f"https://www.amazon.com/s?k={quote_plus(query)}"
        return f"https://{config.marketplace}/s?k={quote_plus(query)}&tag={config.partner_tag}"

    def generate_product_url(self, asin: str, region: str) -> str:
        config = self.get_config(region)
        if config is None:
            return f"https://www.amazon.com/dp/{asin}"
        return f"https://{config.marketplace}/dp/{asin}?tag={config.partner_tag}"

    # ============ SEARCH ============

    def search_products(self, query: str, category: str, region: str) -> List[AmazonProduct]:
        """
        Search products, serving repeated queries from a 24h cache.

        Raises:
            AmazonAPIError: Service disabled, no region config, or PA-API failure
        """
        if not self.enabled:
            raise AmazonAPIError("Amazon service not enabled")

        config = self.get_config(region)
        if config is None:
            raise AmazonAPIError(f"no Amazon configuration available for region: {region}")

        cache_key = f"{region}:{category}:{query}"
        with self._cache_lock:
            cached = self._cache.get(cache_key)
            if cached and self._clock() - cached[1] < CACHE_TTL_SECONDS:
                return cached[0]

        products = self._call_paapi(query, category, config)

        with self._cache_lock:
            self._cache[cache_key] = (products, self._clock())
        return products

    def cleanup_cache(self) -> int:
        """Drop expired cache entries; returns how many were removed."""
        now = self._clock()
        with self._cache_lock:
            expired = [key for key, (_, stored_at) in self._cache.items() if now - stored_at > CACHE_TTL_SECONDS]
            for key in expired:
                del self._cache[key]
        return len(expired)

    def enrich_with_amazon_data(self, name: str, category: str, region: str) -> Tuple[str, str, str]:
        """
        Best-effort product lookup for a gift.

        Returns:
            (affiliate_url, price, asin); price and asin are empty when only a
            search URL could be produced
        """
        if not self.enabled:
            return self.generate_search_url(name, region), "", ""

        query = build_search_query(name, category)
        try:
            products = self.search_products(query, category, region)
        except AmazonAPIError as e:
            logger.warning(f"Amazon search failed for '{query}': {e}")
            products = []

        if products:
            best = products[0]
            return best.affiliate_url, best.price, best.asin
        return self.generate_search_url(query, region), "", ""

    # ============ PA-API ============

    def build_search_payload(self, query: str, category: str, config: AmazonRegionConfig) -> Dict:
        return {
            "Keywords": query,
            "Resources": ["ItemInfo.Title", "Offers.Listings.Price", "Images.Primary.Large"],
            "ItemCount": 3,
            "PartnerTag": config.partner_tag,
            "PartnerType": "Associates",
            "Marketplace": config.marketplace,
            "SearchIndex": map_category_to_search_index(category),
        }

    def sign_request(self, endpoint: str, body: bytes, config: AmazonRegionConfig) -> Dict[str, str]:
        """
        Sign a SearchItems request with AWS Signature Version 4.

        Returns:
            Headers to send, including Authorization and X-Amz-Date
        """
        request = AWSRequest(
            method="POST",
            url=endpoint,
            data=body,
            headers={
                "content-encoding": "amz-1.0",
                "content-type": "application/json; charset=UTF-8",
                "host": config.host,
                "x-amz-target": PAAPI_TARGET,
            },
        )
        credentials = Credentials(self.access_key, self.secret_key)
        SigV4Auth(credentials, PAAPI_SERVICE, config.region).add_auth(request)
        return dict(request.headers.items())

    def _call_paapi(self, query: str, category: str, config: AmazonRegionConfig) -> List[AmazonProduct]:
        endpoint = f"https://{config.host}/paapi5/searchitems"
        body = json.dumps(self.build_search_payload(query, category, config)).encode("utf-8")
        headers = self.sign_request(endpoint, body, config)

        try:
            if self._client is not None:
                response = self._client.post(endpoint, content=body, headers=headers, timeout=AMAZON_TIMEOUT)
            else:
                with httpx.Client(timeout=AMAZON_TIMEOUT) as client:
                    response = client.post(endpoint, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise AmazonAPIError(f"error sending request: {e}")

        if response.status_code != 200:
            raise AmazonAPIError(f"PA-API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise AmazonAPIError(f"error parsing response: {e}")
        return self.parse_search_response(data, config)

    def parse_search_response(self, data: Dict, config: AmazonRegionConfig) -> List[AmazonProduct]:
        region = "fr" if config.marketplace == "www.amazon.fr" else "us"
        products = []
        for item in (data.get("SearchResult") or {}).get("Items") or []:
            asin = item.get("ASIN", "")
            title = ((item.get("ItemInfo") or {}).get("Title") or {}).get("DisplayValue", "")
            product = AmazonProduct(asin=asin, title=title, affiliate_url=self.generate_product_url(asin, region))

            listings = (item.get("Offers") or {}).get("Listings") or []
            if listings:
                price = listings[0].get("Price") or {}
                product.price = price.get("DisplayAmount", "")
                product.currency_code = price.get("Currency", "")

            image = ((item.get("Images") or {}).get("Primary") or {}).get("Large") or {}
            product.image_url = image.get("URL", "")
            products.append(product)
        return products


# Global instance (singleton pattern); keeps the search cache for the process
_amazon_service_instance = None

def get_amazon_service() -> AmazonService:
    global _amazon_service_instance
    if _amazon_service_instance is None:
        _amazon_service_instance = AmazonService()
    return _amazon_service_instance
