"""Anthropic Claude extractor.

Sends the PDF as a base64 document block together with a strict-JSON prompt
to the Anthropic Messages API and maps the reply onto BillDetails.

Privacy Constraints:
- Never log document content or raw replies at INFO level
- The API key is only ever sent as a request header
"""

from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import httpx

from .base import BaseExtractor, BillDetails, round_confidence
from .prompts import BILL_FIELDS, BillPrompt

if TYPE_CHECKING:
    from ..config import AnthropicConfig

logger = logging.getLogger(__name__)


class UnexpectedResponseError(Exception):
    """Raised when the Messages API reply does not have the expected shape."""

    pass


def strip_code_fences(content: str) -> str:
    """Remove leading ```/```json and trailing ``` markers around a reply."""
    content = content.strip()
    content = re.sub(r"^```(?:json)?\s*", "", content, flags=re.IGNORECASE)
    content = re.sub(r"\s*```$", "", content)
    return content.strip()


def coerce_amount(raw: Any) -> Decimal | None:
    """Convert a JSON amount (number or numeric string) to a positive Decimal."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        text = str(raw)
    elif isinstance(raw, str):
        text = raw.replace("$", "").replace(",", "").strip()
    else:
        return None

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None

    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def coerce_text(raw: Any) -> str | None:
    """Convert a JSON string field, treating null and blank as absent."""
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


class ClaudeExtractor(BaseExtractor):
    """Bill extractor backed by the Anthropic Messages API.

    Confidence is the share of the four bill fields the model filled in.
    Every failure (network, timeout, HTTP status, malformed reply) is
    absorbed and reported as a zero-confidence result.
    """

    def __init__(self, config: AnthropicConfig, prompt: BillPrompt | None = None) -> None:
        """Initialize the extractor. No network I/O happens here.

        Args:
            config: Anthropic API settings.
            prompt: Prompt template (defaults to BillPrompt()).
        """
        self.config = config
        self._prompt = prompt or BillPrompt()

        self._client = httpx.Client(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(self.config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers={
                "x-api-key": self.config.api_key or "",
                "anthropic-version": self.config.api_version,
                "content-type": "application/json",
            },
        )

    @property
    def name(self) -> str:
        return "anthropic-claude"

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self._client.close()

    def parse(self, pdf_bytes: bytes) -> BillDetails:
        """Extract bill details with Claude, never raising."""
        try:
            return self._to_details(self._parse_with_claude(pdf_bytes))
        except Exception as e:
            logger.warning("Claude extraction failed (%s): %s", type(e).__name__, e)
            return BillDetails.empty()

    def _to_details(self, data: dict) -> BillDetails:
        """Map the reply object onto BillDetails; null or missing keys stay absent."""
        details = BillDetails(
            amount=coerce_amount(data.get("amount")),
            service_provider=coerce_text(data.get("serviceProvider")),
            payment_portal=coerce_text(data.get("paymentPortal")),
            due_date=coerce_text(data.get("dueDate")),
        )
        return replace(details, confidence=round_confidence(details.field_count / len(BILL_FIELDS)))

    def _parse_with_claude(self, pdf_bytes: bytes) -> dict:
        """Send the document to Claude and return the parsed JSON object.

        Raises:
            httpx.HTTPError: On transport errors, timeouts or error statuses.
            UnexpectedResponseError: If the reply has no leading text block.
            json.JSONDecodeError: If the text is not valid JSON.
        """
        payload = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": self._prompt.build_content(
                        base64.b64encode(pdf_bytes).decode("ascii")
                    ),
                }
            ],
        }

        logger.debug(
            "Calling Claude model %s (prompt %s, %d bytes)",
            self.config.model,
            self._prompt.version,
            len(pdf_bytes),
        )

        response = self._client.post("/v1/messages", json=payload)
        response.raise_for_status()

        text = self._first_text_block(response.json())
        content = strip_code_fences(text)
        logger.debug("Claude reply: %s", content)

        return self._parse_json_response(content)

    def _first_text_block(self, data: Any) -> str:
        """Return the text of the first content block of a Messages reply."""
        if not isinstance(data, dict):
            raise UnexpectedResponseError("Reply is not a JSON object")

        blocks = data.get("content")
        if not isinstance(blocks, list) or not blocks:
            raise UnexpectedResponseError("Reply has no content blocks")

        first = blocks[0]
        if not isinstance(first, dict) or first.get("type") != "text":
            raise UnexpectedResponseError("Unexpected response type from Claude")

        text = first.get("text")
        if not isinstance(text, str):
            raise UnexpectedResponseError("Text block has no text")
        return text

    def _parse_json_response(self, content: str) -> dict:
        """Parse the fence-stripped reply, which must be a JSON object."""
        if not content:
            raise json.JSONDecodeError("Empty response", "", 0)

        parsed = json.loads(content)
        if not isinstance(parsed, dict):
            raise UnexpectedResponseError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed
