"""
Mistral Integration Service
Agent completions with tool calling, chat completions and the Conversations API
"""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple
import httpx
from config import Settings, get_settings
from services.errors import UpstreamError

logger = logging.getLogger(__name__)

AGENT_TIMEOUT = 60.0
SIMILARITY_TIMEOUT = 30.0
CONVERSATION_TIMEOUT = 120.0

IATA_ORIGIN_DESCRIPTION = (
    "IATA code of the origin airport (e.g., PAR for PARIS, CDG for PARIS CDG, "
    "LHR for LONDON HENRY FIELD, HND for TOKYO HANEDA)"
)

# ============ TOOL SCHEMAS ============

FLIGHT_INSPIRATION_TOOL = {
    "type": "function",
    "function": {
        "name": "search_flights",
        "description": (
            "provides a list of destinations from a city, filter by the maximum price."
            "This tool should be used when a user asked for possible destination from a city. "
            "The city must have a valid an airport with a valid IATA Code. The tool will return "
            "a list of destinations as IATA codes, from the origin airport, with price and "
            "departure date. This tool must not be used to search flights between an origin "
            "and a destination"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "origin": {"type": "string", "description": IATA_ORIGIN_DESCRIPTION},
                "departureDate": {
                    "type": "string",
                    "description": (
                        "Departure date in YYYY-MM-DD format. If not provided, the API will "
                        "search for flights in the next few months."
                    ),
                },
                "maxPrice": {"type": "integer", "description": "Optional maximum price for flights."},
                "oneWay": {
                    "type": "boolean",
                    "description": "Optional parameter to specify if the flight is one-way. Default is false (round-trip).",
                },
                "nonStop": {
                    "type": "boolean",
                    "description": "Optional parameter to specify if the flight should be non-stop. Default is true.",
                },
            },
            "required": ["origin"],
        },
    },
}

FLIGHT_CHEAPEST_DATES_TOOL = {
    "type": "function",
    "function": {
        "name": "search_flight_dates",
        "description": (
            "Finds the cheapest flight dates between a specific origin and destination. "
            "This tool should be used when a user wants to know the cheapest dates to fly "
            "between two specific cities. Both cities must have valid airports with valid "
            "IATA codes. Do not fill the dates if not specified"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "origin": {"type": "string", "description": IATA_ORIGIN_DESCRIPTION},
                "destination": {"type": "string", "description": "IATA code of the destination airport"},
                "departureDate": {
                    "type": "string",
                    "description": (
                        "Optional departure date in YYYY-MM-DD format for the earliest date, or "
                        "specific date in YYYY-MM-DD format. If not provided, the API will search "
                        "for flights in the next few months. Ranges must be specified with a comma."
                    ),
                },
                "duration": {
                    "type": "integer",
                    "description": (
                        "Optional duration of the trip in days. Only applicable for round-trip "
                        "flights. For one-way flights, leave this empty."
                    ),
                },
                "maxPrice": {"type": "integer", "description": "Optional maximum price for flights."},
                "oneWay": {
                    "type": "boolean",
                    "description": "Optional parameter to specify if the flight is one-way. Default is false (round-trip).",
                },
                "nonStop": {
                    "type": "boolean",
                    "description": "Optional parameter to specify if the flight should be non-stop. Default is true.",
                },
            },
            "required": ["origin", "destination"],
        },
    },
}

FLIGHT_TOOLS = [FLIGHT_INSPIRATION_TOOL, FLIGHT_CHEAPEST_DATES_TOOL]


class MistralAPIError(UpstreamError):
    """Non-2xx answer (or transport failure) from the Mistral API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.upstream_status = status_code
        self.body = body


# ============ RESPONSE HELPERS ============

def extract_tool_calls(response_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Raw tool_calls of the first choice, or an empty list."""
    choices = response_data.get("choices") or []
    if not choices:
        return []
    return (choices[0].get("message") or {}).get("tool_calls") or []


def detect_function_call(response_data: Dict[str, Any]) -> Optional[Tuple[str, Dict[str, Any], str]]:
    """
    Find the first tool call in a completion response.

    Arguments may arrive as a JSON string or as an already decoded object.

    Returns:
        (name, arguments, tool_call_id), or None when the model answered in text

    Raises:
        ValueError: If the arguments string is not valid JSON
    """
    for choice in response_data.get("choices") or []:
        tool_calls = (choice.get("message") or {}).get("tool_calls") or []
        if not tool_calls:
            continue
        call = tool_calls[0]
        function = call.get("function") or {}
        arguments = function.get("arguments") or {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                raise ValueError(f"error parsing tool call arguments: {e}")
        return function.get("name", ""), arguments, call.get("id", "")
    return None


def extract_message_content(response_data: Dict[str, Any]) -> str:
    choices = response_data.get("choices") or []
    if not choices:
        raise MistralAPIError("no response from API")
    content = (choices[0].get("message") or {}).get("content")
    if isinstance(content, list):
        # Chunked content: keep the text parts
        content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content or ""


class MistralService:
    """Thin synchronous client over the Mistral REST API"""

    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[httpx.Client] = None):
        self.settings = settings or get_settings()
        self.api_key = self.settings.MISTRAL_API_KEY
        self.api_url = self.settings.MISTRAL_API_URL
        if not self.api_url.endswith("/"):
            self.api_url += "/"
        self.agent_id = self.settings.MISTRAL_AGENT_ID
        self._client = http_client

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _post(self, path: str, payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        try:
            if self._client is not None:
                response = self._client.post(url, json=payload, headers=self._headers(), timeout=timeout)
            else:
                with httpx.Client(timeout=timeout) as client:
                    response = client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Mistral request to {path} failed: {e}")
            raise MistralAPIError(f"error sending request: {e}")

        if response.status_code != 200:
            raise MistralAPIError(
                f"API returned error: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as e:
            raise MistralAPIError(f"error decoding response: {e}")

    # ============ AGENT COMPLETIONS ============

    def send_chat_with_tools(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Agent completion with tool calling enabled.

        Args:
            messages: Chat messages ({"role", "content"})
            tools: Tool schemas, defaults to the flight tools

        Returns:
            The decoded response body, for detect_function_call()
        """
        payload = {
            "agent_id": self.agent_id,
            "messages": messages,
            "max_tokens": 2000,
            "stream": False,
            "tools": tools if tools is not None else FLIGHT_TOOLS,
        }
        return self._post("v1/agents/completions", payload, AGENT_TIMEOUT)

    def send_chat_raw(self, messages: List[Dict[str, Any]]) -> str:
        """Agent completion over raw messages (assistant tool_calls, tool results)."""
        payload = {
            "agent_id": self.agent_id,
            "messages": messages,
            "stream": False,
        }
        return extract_message_content(self._post("v1/agents/completions", payload, AGENT_TIMEOUT))

    def send_chat(self, messages: List[Dict[str, Any]]) -> str:
        payload = {
            "agent_id": self.agent_id,
            "messages": messages,
            "max_tokens": 2000,
            "stream": False,
        }
        return extract_message_content(self._post("v1/agents/completions", payload, AGENT_TIMEOUT))

    # ============ CHAT / CONVERSATIONS ============

    def chat_completion(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: int = 500,
    ) -> str:
        """Plain model chat completion, used for short classification prompts."""
        payload = {
            "model": model or self.settings.MISTRAL_SIMILARITY_MODEL,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        return extract_message_content(self._post("v1/chat/completions", payload, SIMILARITY_TIMEOUT))

    def start_conversation(self, prompt: str, agent_id: Optional[str] = None) -> str:
        """
        One-shot Conversations API call.

        Returns:
            Text content of the first output entry
        """
        payload = {
            "agent_id": agent_id or self.settings.gift_agent_id,
            "stream": False,
            "inputs": [{"role": "user", "content": prompt}],
        }
        data = self._post("v1/conversations", payload, CONVERSATION_TIMEOUT)

        outputs = data.get("outputs") or []
        if not outputs:
            raise MistralAPIError("no outputs in conversation response")
        content = outputs[0].get("content")
        if isinstance(content, list):
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return content or ""


# Global instance (singleton pattern)
_mistral_service_instance = None

def get_mistral_service() -> MistralService:
    global _mistral_service_instance
    if _mistral_service_instance is None:
        _mistral_service_instance = MistralService()
    return _mistral_service_instance
