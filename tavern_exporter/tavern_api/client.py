# tavern_exporter/tavern_api/client.py
#
#
# Imports
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional
#
# 3rd-party Libraries
import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying, RetryCallState, retry_if_exception_type, retry_if_result, stop_after_attempt, wait_exponential,
)
#
# Local Imports
from .schemas import CharacterDetails
from .exceptions import APIConnectionError, APIResponseError
from .utils import parse_object
from ..Constants import (
    PAGE_SIZE, CSRF_HEADER, MAX_RETRIES, BACKOFF_BASE_MS, BACKOFF_CAP_MS, RETRYABLE_STATUS_CODES,
)
#
########################################################################################################################
#
# Functions:

@dataclass
class RemoteResponse:
    """Outcome of one logical request, after retries."""
    body: Optional[str]
    metadata_header: Optional[str]
    status_code: int

    @property
    def ok(self) -> bool:
        return self.body is not None

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


def _last_status(retry_state: RetryCallState) -> int:
    """Status of the latest attempt; 0 when it never got a response."""
    outcome = retry_state.outcome
    if outcome is None or outcome.failed:
        return 0
    return outcome.result().status_code


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES or 500 <= status_code < 600


class TavernAPIClient:
    def __init__(
        self,
        base_url: str,
        cookie: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = MAX_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.cookie = cookie
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport
        self._sleep = sleep or asyncio.sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "TavernAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # --- Endpoints ---
    @staticmethod
    def chats_path(offset: int, limit: int = PAGE_SIZE) -> str:
        return f"/v1/chats?limit={limit}&offset={offset}"

    @staticmethod
    def messages_path(chat_uuid: str, offset: int, limit: int = PAGE_SIZE) -> str:
        return f"/v1/chats/{chat_uuid}/messages?limit={limit}&offset={offset}"

    @staticmethod
    def character_path(character_uuid: str) -> str:
        return f"/v1/characters/{character_uuid}"

    async def _attempt(self, client: httpx.AsyncClient, url: str,
                       headers: Optional[Dict[str, str]]) -> RemoteResponse:
        """One GET. Transport failures propagate as httpx.RequestError."""
        response = await client.get(url, headers=headers)
        status_code = response.status_code
        logger.debug(f"GET {url} -> HTTP {status_code}")
        if 200 <= status_code < 300 or status_code == 404:
            return RemoteResponse(response.text, response.headers.get(CSRF_HEADER), status_code)
        if not is_retryable_status(status_code):
            logger.error(f"Request failed without retry: HTTP {status_code} for {url}")
        return RemoteResponse(None, None, status_code)

    async def request(self, url: str) -> RemoteResponse:
        """
        GETs `url` (relative to the API base, or absolute) with the session's retry policy.

        2xx and 404 complete with the body. 429, 5xx and transport errors are
        retried up to `max_retries` times with exponential backoff; once the
        budget is spent, or on any other 4xx, the body is None and the last
        status code is reported (0 when no response was ever received).
        """
        client = await self._get_client()
        headers = {"Cookie": self.cookie} if self.cookie else None

        def log_retry(retry_state: RetryCallState) -> None:
            logger.warning(f"Retrying {url} (status {_last_status(retry_state)}, "
                           f"attempt {retry_state.attempt_number}) in {retry_state.next_action.sleep:.0f} s")

        def give_up(retry_state: RetryCallState) -> RemoteResponse:
            status_code = _last_status(retry_state)
            logger.error(f"Giving up on {url} after {retry_state.attempt_number} attempts (last status {status_code})")
            return RemoteResponse(None, None, status_code)

        retrying = AsyncRetrying(
            retry=(retry_if_exception_type(httpx.RequestError)
                   | retry_if_result(lambda r: is_retryable_status(r.status_code))),
            wait=wait_exponential(multiplier=BACKOFF_BASE_MS / 1000.0, max=BACKOFF_CAP_MS / 1000.0),
            stop=stop_after_attempt(self.max_retries + 1),
            sleep=self._sleep,
            before_sleep=log_retry,
            retry_error_callback=give_up,
        )
        return await retrying(self._attempt, client, url, headers)

    async def fetch_character(self, character_uuid: str) -> Optional[CharacterDetails]:
        """Character name and greeting; None when the lookup fails for any reason."""
        if not character_uuid:
            return None
        response = await self.request(self.character_path(character_uuid))
        payload = parse_object(response.body) if response.ok and not response.not_found else None
        if payload is None:
            logger.info(f"No character details available for {character_uuid} (HTTP {response.status_code})")
            return None
        return CharacterDetails.from_api(payload)

    async def fetch_bytes(self, url: str) -> bytes:
        """Single-attempt download of a media URL. Session cookies are not sent to media hosts."""
        client = await self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise APIResponseError(e.response.status_code, f"Download failed for {url}")
        except httpx.RequestError as e:
            raise APIConnectionError(f"Connection error while downloading {url}: {e}")
        return response.content

#
# End of client.py
########################################################################################################################
