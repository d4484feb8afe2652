"""Shared HTTP request handling for provider clients."""

import random
import time
from http import HTTPStatus
from typing import Any

import httpx
import structlog

from bytefeed.extraction.errors import LlmApiError


MAX_RETRIES = 2
RETRY_BASE_DELAY = 1.0
RETRYABLE_STATUS_CODES = frozenset(
    {HTTPStatus.TOO_MANY_REQUESTS, HTTPStatus.SERVICE_UNAVAILABLE}
)


def post_json(
    url: str,
    *,
    headers: dict[str, str],
    body: dict[str, Any],
    timeout: float,
    provider: str,
    log: structlog.stdlib.BoundLogger,
) -> dict[str, Any]:
    """POST a JSON body and return the decoded JSON response.

    Retries with exponential backoff on 429/503 responses. Timeouts and
    transport errors are not retried; the provider chain moves on instead.

    Args:
        url: Endpoint URL.
        headers: Request headers.
        body: JSON request body.
        timeout: Per-request timeout in seconds.
        provider: Provider name for errors and logs.
        log: Bound logger of the calling client.

    Returns:
        Decoded JSON object.

    Raises:
        LlmApiError: On transport failure, non-2xx status after retries,
            or a body that is not a JSON object.
    """
    last_exc: LlmApiError | None = None

    for attempt in range(MAX_RETRIES + 1):
        try:
            response = httpx.post(url, headers=headers, json=body, timeout=timeout)
        except httpx.HTTPError as exc:
            msg = f"{provider} API request failed: {exc}"
            raise LlmApiError(msg, provider=provider) from exc

        if response.status_code == HTTPStatus.OK:
            break

        if response.status_code in RETRYABLE_STATUS_CODES and attempt < MAX_RETRIES:
            delay = RETRY_BASE_DELAY * (2**attempt) + random.uniform(0, 1)  # noqa: S311
            log.warning(
                "provider_retryable_error",
                status=response.status_code,
                attempt=attempt + 1,
                retry_delay=round(delay, 1),
            )
            time.sleep(delay)
            last_exc = LlmApiError(
                f"{provider} API returned {response.status_code}",
                status_code=response.status_code,
                provider=provider,
            )
            continue

        msg = f"{provider} API returned {response.status_code}"
        raise LlmApiError(msg, status_code=response.status_code, provider=provider)
    else:
        raise last_exc or LlmApiError("All retries exhausted", provider=provider)

    try:
        data = response.json()
    except ValueError as exc:
        msg = f"{provider} API returned a non-JSON body"
        raise LlmApiError(msg, provider=provider) from exc

    if not isinstance(data, dict):
        msg = f"{provider} API returned an unexpected envelope"
        raise LlmApiError(msg, provider=provider)
    return data
