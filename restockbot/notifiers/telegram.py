"""Telegram Bot API client for Restockbot.

Provides :class:`TelegramClient`, a small async wrapper around the Bot API's
``sendMessage`` endpoint:

* One keep-alive :class:`httpx.AsyncClient` with an explicit timeout budget.
* Retries with capped exponential back-off via :mod:`tenacity`.
* HTTP 429 ``retry_after`` honoured.
* Errors mapped to :class:`~restockbot.core.exceptions.TelegramError` and
  :class:`~restockbot.core.exceptions.TelegramRateLimitError`.

Message text is produced by :mod:`restockbot.notifiers.formatter`; the
decision whether to send at all lives in :mod:`restockbot.notifiers.notifier`.

Typical usage::

    async with TelegramClient(token="123:ABC", chat_id="-1001234") as client:
        await client.send_message("Back in stock\\!")
"""

from __future__ import annotations

import logging
import random
from typing import Final

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from restockbot.core.exceptions import TelegramError, TelegramRateLimitError

__all__ = ["TelegramClient"]

logger = logging.getLogger(__name__)

_TELEGRAM_BASE_URL: Final[str] = "https://api.telegram.org"

_RETRYABLE_STATUS: Final[frozenset[int]] = frozenset({500, 502, 503, 504})

_DEFAULT_TIMEOUT: Final[float] = 10.0

#: 1 initial try + 2 retries.  A restock alert that is a minute late is
#: worth less than the next probe cycle, so the budget is kept short.
_DEFAULT_MAX_ATTEMPTS: Final[int] = 3

_MAX_BACKOFF_BASE: Final[float] = 8.0
_MAX_BACKOFF_JITTER: Final[float] = 1.0


class _RetryableServerError(TelegramError):
    """Raised on 5xx to trigger a retry; never escapes :meth:`TelegramClient.send_message`."""


def _telegram_wait(retry_state: RetryCallState) -> float:
    """Seconds to wait before the next attempt.

    A rate-limit error's ``retry_after`` wins; otherwise exponential back-off
    (1, 2, 4 … capped at :data:`_MAX_BACKOFF_BASE`) plus a little jitter.
    """
    if retry_state.outcome is not None:
        exc = retry_state.outcome.exception()
        if isinstance(exc, TelegramRateLimitError) and exc.retry_after > 0:
            return exc.retry_after

    attempt = max(retry_state.attempt_number, 1)
    base = min(2.0 ** (attempt - 1), _MAX_BACKOFF_BASE)
    return base + random.uniform(0.0, _MAX_BACKOFF_JITTER)


class TelegramClient:
    """Async Telegram Bot API client.

    Args:
        token: Bot token (non-empty).
        chat_id: Destination chat identifier (non-empty).
        timeout: Per-request timeout in seconds.
        max_attempts: Total send attempts including the first (≥ 1).
        transport: Optional :class:`httpx.AsyncBaseTransport`; tests pass an
            :class:`httpx.MockTransport`.

    Raises:
        ValueError: If ``token``, ``chat_id`` or ``max_attempts`` are invalid.
    """

    def __init__(
        self,
        token: str,
        chat_id: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise ValueError("TelegramClient requires a non-empty token.")
        if not chat_id:
            raise ValueError("TelegramClient requires a non-empty chat_id.")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be ≥ 1, got {max_attempts!r}.")

        self._token = token
        self._chat_id = chat_id
        self._max_attempts = max_attempts
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> TelegramClient:
        self._ensure_http_client()
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def send_message(self, text: str, *, parse_mode: str = "MarkdownV2") -> None:
        """Send *text* to the configured chat.

        Retries on transport errors, HTTP 429 and HTTP 5xx; any other non-200
        answer raises immediately.

        Raises:
            TelegramRateLimitError: Still rate limited after the last attempt.
            TelegramError: Any other delivery failure.
        """
        retry_types = (TelegramRateLimitError, _RetryableServerError, httpx.TransportError)

        def _before_sleep(rs: RetryCallState) -> None:
            exc = rs.outcome.exception() if rs.outcome else None
            logger.warning(
                "Telegram send attempt %d/%d failed (%s), retrying",
                rs.attempt_number,
                self._max_attempts,
                type(exc).__name__ if exc else "?",
            )

        try:
            async for attempt in AsyncRetrying(
                wait=_telegram_wait,
                stop=stop_after_attempt(self._max_attempts),
                retry=retry_if_exception_type(retry_types),
                reraise=True,
                before_sleep=_before_sleep,
            ):
                with attempt:
                    await self._single_attempt(text=text, parse_mode=parse_mode)
        except httpx.TransportError as exc:
            raise TelegramError(f"Transport failure: {exc}") from exc

    async def close(self) -> None:
        """Close the HTTP session.  Safe to call more than once."""
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
            logger.debug("TelegramClient HTTP session closed.")
        self._http = None

    def _ensure_http_client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=_TELEGRAM_BASE_URL,
                timeout=self._timeout,
                transport=self._transport,
                headers={"User-Agent": "Restockbot/0.1"},
            )
        return self._http

    async def _single_attempt(self, *, text: str, parse_mode: str) -> None:
        client = self._ensure_http_client()

        payload: dict[str, object] = {
            "chat_id": self._chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode

        response = await client.post(f"/bot{self._token}/sendMessage", json=payload)
        logger.debug("Telegram response: HTTP %d", response.status_code)

        if response.status_code == 200:
            _assert_telegram_ok(response)
            return
        if response.status_code == 429:
            raise TelegramRateLimitError(retry_after=_parse_retry_after(response))
        if response.status_code in _RETRYABLE_STATUS:
            raise _RetryableServerError(
                f"Transient server error: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        raise TelegramError(_extract_description(response), status_code=response.status_code)


# ---------------------------------------------------------------------------
# Response parsing helpers
# ---------------------------------------------------------------------------


def _body(response: httpx.Response) -> dict[str, object]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _assert_telegram_ok(response: httpx.Response) -> None:
    """Telegram can answer HTTP 200 with ``"ok": false``; treat that as an error."""
    body = _body(response)
    if not body.get("ok"):
        description = body.get("description", "(no description)")
        raise TelegramError(f"Telegram ok=false: {description}", status_code=200)


def _parse_retry_after(response: httpx.Response) -> float:
    """Back-off from ``parameters.retry_after``, then the header, else 1 s."""
    parameters = _body(response).get("parameters")
    if isinstance(parameters, dict) and parameters.get("retry_after") is not None:
        try:
            return max(float(parameters["retry_after"]), 1.0)
        except (TypeError, ValueError):
            pass

    header = response.headers.get("retry-after", "")
    if header:
        try:
            return max(float(header), 1.0)
        except ValueError:
            pass

    return 1.0


def _extract_description(response: httpx.Response) -> str:
    description = _body(response).get("description")
    return str(description or response.text or f"HTTP {response.status_code}")
