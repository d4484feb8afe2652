"""Extraction pipeline: provider fallback, JSON repair, and validation."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import structlog

from bytefeed.config.constants import (
    COMPONENT_EXTRACTION,
    MAX_EXTRACTION_CHARS,
    WORDS_PER_MINUTE,
)
from bytefeed.extraction.errors import ExtractionError, LlmProcessingError
from bytefeed.extraction.json_utils import parse_ai_response
from bytefeed.extraction.models import ExtractionResult, SourceInfo
from bytefeed.extraction.prompts import (
    EXTRACTION_SYSTEM_INSTRUCTION,
    build_extraction_prompt,
)
from bytefeed.extraction.protocols import LlmClient
from bytefeed.extraction.validation import validate_bytes


logger = structlog.get_logger()


def estimate_read_time(text: str) -> int:
    """Estimate reading time in whole minutes (at least one)."""
    words = len(text.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _parse_source_info(raw: Any) -> SourceInfo | None:
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    website = raw.get("website")
    name = name.strip() if isinstance(name, str) and name.strip() else None
    website = (
        website.strip()
        if isinstance(website, str) and website.strip().startswith(("http://", "https://"))
        else None
    )
    if name is None and website is None:
        return None
    return SourceInfo(name=name, website=website)


def _parse_read_time(raw: Any, fallback: int) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        return fallback
    minutes = math.ceil(raw)
    return minutes if minutes >= 1 else fallback


class ExtractionPipeline:
    """Turns edition text into validated content bytes.

    Providers are tried strictly in order. A provider that raises, returns
    empty output, or returns output that is still unparseable after JSON
    repair is skipped in favor of the next one. When every provider fails
    the pipeline raises ``ExtractionError`` so the caller's retry logic can
    take over.
    """

    def __init__(self, providers: Sequence[LlmClient]) -> None:
        """Initialize the pipeline.

        Args:
            providers: Provider clients in fallback order.
        """
        self._providers = list(providers)
        self._log = logger.bind(component=COMPONENT_EXTRACTION, subcomponent="pipeline")

    @property
    def providers(self) -> list[LlmClient]:
        """Provider clients in fallback order."""
        return list(self._providers)

    def extract(
        self,
        subject: str,
        text: str,
        source_name: str,
        *,
        extract_source_info: bool = False,
    ) -> ExtractionResult:
        """Extract content bytes from one edition.

        Args:
            subject: Edition subject.
            text: Edition plain text.
            source_name: Display name of the owning source.
            extract_source_info: Also ask for the source's name and website.

        Returns:
            Validated bytes and edition metadata.

        Raises:
            ExtractionError: If every provider failed.
        """
        truncated = text[:MAX_EXTRACTION_CHARS]
        prompt = build_extraction_prompt(
            subject, truncated, source_name, extract_source_info
        )
        failures: list[tuple[str, str]] = []

        for provider in self._providers:
            try:
                raw_response = provider.generate_content(
                    prompt=prompt,
                    system_instruction=EXTRACTION_SYSTEM_INSTRUCTION,
                )
                payload = self._parse_payload(raw_response)
            except Exception as exc:
                self._log.warning(
                    "provider_failed",
                    provider=provider.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                failures.append((provider.name, str(exc) or type(exc).__name__))
                continue

            result = self._build_result(payload, text, provider.name, extract_source_info)
            self._log.info(
                "extraction_succeeded",
                provider=provider.name,
                bytes_extracted=len(result.bytes),
                providers_failed=len(failures),
            )
            return result

        self._log.error("extraction_exhausted", failures=len(failures))
        raise ExtractionError(failures)

    @staticmethod
    def _parse_payload(raw_response: str) -> dict[str, Any]:
        """Parse a provider response into the extraction payload.

        A bare array is accepted as the list of bytes.

        Raises:
            LlmProcessingError: If the response is empty or unparseable.
        """
        if not raw_response or not raw_response.strip():
            msg = "Empty response"
            raise LlmProcessingError(msg)

        parsed = parse_ai_response(raw_response)
        if isinstance(parsed, list):
            return {"bytes": parsed}
        if not isinstance(parsed, dict):
            msg = f"Unparseable response: {raw_response[:200]}"
            raise LlmProcessingError(msg)
        return parsed

    @staticmethod
    def _build_result(
        payload: dict[str, Any],
        text: str,
        model_used: str,
        extract_source_info: bool,
    ) -> ExtractionResult:
        summary = _first(payload, "summary")
        source_info = None
        if extract_source_info:
            source_info = _parse_source_info(
                _first(payload, "newsletterInfo", "newsletter_info", "source_info", "sourceInfo")
            )
        return ExtractionResult(
            bytes=validate_bytes(_first(payload, "bytes", "contentBytes", "content_bytes")),
            summary=summary.strip() if isinstance(summary, str) and summary.strip() else None,
            read_time_minutes=_parse_read_time(
                _first(payload, "readTimeMinutes", "read_time_minutes"),
                estimate_read_time(text),
            ),
            source_info=source_info,
            model_used=model_used,
        )
