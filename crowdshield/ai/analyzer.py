"""
Server-side incident analysis backed by a generative AI gateway.

The gateway is an OpenAI-compatible chat completions endpoint. The model is
forced to call a `classify_incident` tool whose arguments are constrained to
the fixed urgency and category enums. Any failure degrades to the neutral
default triple; nothing is raised to the caller.
"""

import json
import logging
from typing import Optional, Dict, Any

import httpx

from crowdshield.core.constants import CATEGORY_IDS, URGENCY_LEVELS

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are an assistant that classifies short incident reports for crowd "
    "safety at events.\nRespond ONLY by calling the classify_incident tool. "
    "No extra text."
)

CLASSIFY_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "classify_incident",
        "description": "Return the classification of the incident report.",
        "parameters": {
            "type": "object",
            "properties": {
                "urgency": {
                    "type": "string",
                    "enum": URGENCY_LEVELS,
                    "description": "How urgent is this incident?",
                },
                "ai_category": {
                    "type": "string",
                    "enum": CATEGORY_IDS,
                    "description": "The category of the incident.",
                },
                "transcript": {
                    "type": "string",
                    "description": "A cleaned-up version of the original text.",
                },
            },
            "required": ["urgency", "ai_category", "transcript"],
            "additionalProperties": False,
        },
    },
}


def default_analysis(text: str) -> Dict[str, str]:
    """Neutral result used whenever the gateway cannot be used."""
    return {"urgency": "low", "ai_category": "other", "transcript": text}


class IncidentAnalyzer:
    """
    Classifies report text through the AI gateway.

    One request per call, no retry, no caching.
    """

    def __init__(
        self,
        api_key: Optional[str],
        gateway_url: str,
        model: str,
        timeout: float = 10.0
    ):
        """
        Initialize analyzer.

        Args:
            api_key: Gateway bearer token
            gateway_url: Chat completions URL
            model: Model identifier passed to the gateway
            timeout: HTTP request timeout in seconds
        """
        self.api_key = api_key
        self.gateway_url = gateway_url
        self.model = model
        self.timeout = timeout

    def _build_request(self, text: str) -> Dict[str, Any]:
        escaped = text.replace('"', '\\"')
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f'Classify this incident report: "{escaped}"'},
            ],
            "tools": [CLASSIFY_TOOL],
            "tool_choice": {"type": "function", "function": {"name": "classify_incident"}},
            "temperature": 0,
        }

    def _parse_response(self, data: Any, text: str) -> Dict[str, str]:
        """Extract and validate the tool call arguments."""
        try:
            arguments = data["choices"][0]["message"]["tool_calls"][0]["function"]["arguments"]
            parsed = json.loads(arguments)
        except (KeyError, IndexError, TypeError, ValueError):
            logger.warning("Failed to parse tool call arguments")
            return default_analysis(text)

        if not isinstance(parsed, dict):
            return default_analysis(text)

        urgency = parsed.get("urgency")
        ai_category = parsed.get("ai_category")
        transcript = parsed.get("transcript")

        if urgency not in URGENCY_LEVELS or ai_category not in CATEGORY_IDS:
            logger.warning(f"Gateway returned values outside the enums: {parsed}")
            return default_analysis(text)

        return {
            "urgency": urgency,
            "ai_category": ai_category,
            "transcript": transcript if isinstance(transcript, str) else text,
        }

    def analyze(self, text: Optional[str]) -> Dict[str, str]:
        """
        Classify report text.

        Args:
            text: Raw report text

        Returns:
            Dict with urgency, ai_category and transcript
        """
        text = text or ""
        if not text.strip():
            return default_analysis(text)

        if not self.api_key:
            logger.warning("AI gateway key not configured, returning default analysis")
            return default_analysis(text)

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.gateway_url,
                    json=self._build_request(text),
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"AI gateway request failed: {e}")
            return default_analysis(text)

        if response.status_code != 200:
            if response.status_code == 429:
                logger.warning("AI gateway rate limited the request")
            elif response.status_code == 402:
                logger.warning("AI gateway credits exhausted")
            else:
                logger.error(f"AI gateway error: {response.status_code} {response.text}")
            return default_analysis(text)

        try:
            data = response.json()
        except ValueError:
            logger.warning("AI gateway returned invalid JSON")
            return default_analysis(text)

        return self._parse_response(data, text)
