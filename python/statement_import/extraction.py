"""
Document Extraction Module

Sends PDF invoices to Claude and returns the structured JSON it extracts.
"""

import asyncio
import base64
import json
import logging
import re
from typing import Any, Protocol

import anthropic

from .config import ImportSettings
from .exceptions import ExtractionError

logger = logging.getLogger(__name__)


class DocumentExtractor(Protocol):
    """Anything that can turn document bytes into an extraction payload."""

    async def extract(self, document: bytes, instruction: str) -> dict[str, Any]:
        ...


class ClaudeExtractor:
    """Extracts invoice data from PDF bytes using the Claude document API."""

    def __init__(
        self,
        api_key: str | None = None,
        settings: ImportSettings | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        """Initialize the extractor.

        Args:
            api_key: Anthropic API key (uses ANTHROPIC_API_KEY env var if not provided)
            settings: Import settings (model, timeout, token limit)
            client: Pre-built async client, mainly for tests
        """
        self.settings = settings or ImportSettings.load()
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=self.settings.extraction_timeout,
        )
        self.model = self.settings.extraction_model

    async def extract(self, document: bytes, instruction: str) -> dict[str, Any]:
        """Run the extraction call and decode its JSON answer.

        Args:
            document: Raw PDF bytes
            instruction: Extraction prompt sent alongside the document

        Returns:
            Decoded JSON object

        Raises:
            ExtractionError: On API failure, timeout or non-JSON output
        """
        pdf_base64 = base64.standard_b64encode(document).decode("utf-8")

        try:
            message = await asyncio.wait_for(
                self.client.messages.create(
                    model=self.model,
                    max_tokens=self.settings.extraction_max_tokens,
                    messages=[
                        {
                            "role": "user",
                            "content": [
                                {
                                    "type": "document",
                                    "source": {
                                        "type": "base64",
                                        "media_type": "application/pdf",
                                        "data": pdf_base64,
                                    },
                                },
                                {"type": "text", "text": instruction},
                            ],
                        }
                    ],
                ),
                timeout=self.settings.extraction_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Extraction timed out after {self.settings.extraction_timeout}s"
            )
            raise ExtractionError(
                f"Extraction timed out after {self.settings.extraction_timeout}s"
            ) from e
        except anthropic.APIError as e:
            logger.warning(f"Claude API error during extraction: {e}")
            raise ExtractionError(f"API error: {e}") from e

        text_blocks = [b.text for b in message.content if getattr(b, "type", "text") == "text"]
        if not text_blocks:
            raise ExtractionError("Extraction returned no text content")

        logger.info(
            f"Extraction finished (model={self.model}, "
            f"input_tokens={message.usage.input_tokens}, "
            f"output_tokens={message.usage.output_tokens})"
        )
        return parse_json_response("".join(text_blocks))


def parse_json_response(response_text: str) -> dict[str, Any]:
    """Decode a JSON object from model output, tolerating markdown fences.

    Raises:
        ExtractionError: If no JSON object can be decoded
    """
    cleaned = response_text.strip()
    cleaned = re.sub(r'^```json\s*', '', cleaned)
    cleaned = re.sub(r'^```\s*', '', cleaned)
    cleaned = re.sub(r'\s*```$', '', cleaned)
    cleaned = cleaned.strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Fall back to the outermost braces when the model added prose
        match = re.search(r'\{.*\}', cleaned, re.DOTALL)
        if not match:
            raise ExtractionError(f"No JSON payload in extraction response: {cleaned[:200]}")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Failed to parse JSON response: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError("Extraction response is not a JSON object")
    return data
