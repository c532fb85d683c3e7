"""Remote generation client.

Posts chat-completion requests to an OpenAI-compatible endpoint and returns
the raw response bytes. Responses are cached by prompt cache key.

Retry policy:
- timeouts, transport errors and 5xx are retried up to max_retries times
- 4xx is surfaced immediately as ClientRejectedError
- any other non-2xx status (redirects included) is surfaced immediately as
  NetworkTransientError and never cached
"""

import asyncio

import httpx
from loguru import logger

from fitcompose.config.settings import Settings
from fitcompose.llm.prompt_assembler import WorkoutPrompt
from fitcompose.llm.schemas import ChatCompletionRequest, ChatMessage
from fitcompose.planning.errors import ClientRejectedError, EmptyResponseError, NetworkTransientError
from fitcompose.storage.response_cache import DEFAULT_TTL_SECONDS, ResponseCache

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE_URL = "https://api.openai.com/v1/chat/completions"


class RemoteGenerationClient:
    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
        max_tokens: int = 2000,
        temperature: float = 0.55,
        max_retries: int = 2,
        retry_delay_seconds: float = 0.5,
        cache: ResponseCache | None = None,
        cache_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.model = model
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self._api_key = api_key
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        cache: ResponseCache | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "RemoteGenerationClient | None":
        """Build a client from settings, or None when no API key is configured."""
        if not config.openai_api_key:
            logger.info("remote_client: OPENAI_API_KEY not set, remote generation disabled")
            return None
        return cls(
            config.openai_api_key,
            model=config.openai_model,
            base_url=config.openai_base_url,
            timeout_seconds=config.openai_timeout_seconds,
            max_tokens=config.openai_max_tokens,
            temperature=config.openai_temperature,
            max_retries=config.openai_max_retries,
            retry_delay_seconds=config.openai_retry_delay_seconds,
            cache=cache,
            cache_ttl_seconds=config.response_cache_ttl_seconds,
            http_client=http_client,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    def build_request(self, prompt: WorkoutPrompt) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=self.model,
            messages=[
                ChatMessage(role="system", content=prompt.system_message),
                ChatMessage(role="user", content=prompt.user_message),
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

    async def generate(self, prompt: WorkoutPrompt, use_cache: bool = True) -> bytes:
        """Return raw response bytes for a prompt.

        Args:
            prompt: Assembled prompt; its cache_key addresses the response cache
            use_cache: Read from the cache before calling the endpoint. Successful
                responses are always written back.

        Raises:
            ClientRejectedError: Endpoint answered 4xx
            NetworkTransientError: Retry budget exhausted on timeouts, transport errors or 5xx,
                or the endpoint answered with a non-2xx status outside 4xx and 5xx
            EmptyResponseError: Endpoint answered 2xx with an empty body
        """
        if use_cache and self.cache is not None:
            cached = await self.cache.get(prompt.cache_key)
            if cached is not None:
                logger.info("remote_client: Serving cached response", cache_key=prompt.cache_key[:12])
                return cached

        body = self.build_request(prompt).model_dump(mode="json")
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        attempts = self.max_retries + 1
        last_error = ""

        for attempt in range(1, attempts + 1):
            logger.debug(
                "remote_client: Sending request",
                attempt=attempt,
                max_attempts=attempts,
                model=self.model,
                cache_key=prompt.cache_key[:12],
            )
            try:
                response = await self._get_client().post(
                    self.base_url,
                    json=body,
                    headers=headers,
                    timeout=self.timeout_seconds,
                )
            except httpx.TimeoutException as e:
                last_error = f"timeout after {self.timeout_seconds}s: {e}"
                logger.warning("remote_client: Request timed out", attempt=attempt, max_attempts=attempts)
            except httpx.TransportError as e:
                last_error = f"transport error: {e}"
                logger.warning("remote_client: Transport error", attempt=attempt, max_attempts=attempts, error=str(e))
            else:
                status = response.status_code
                if 400 <= status < 500:
                    logger.error("remote_client: Request rejected", status_code=status)
                    raise ClientRejectedError(status, response.text)
                if status >= 500:
                    last_error = f"HTTP {status}"
                    logger.warning("remote_client: Server error", attempt=attempt, max_attempts=attempts, status_code=status)
                elif not 200 <= status < 300:
                    # Redirects are not followed; a retry would get the same answer.
                    logger.error("remote_client: Unexpected status", status_code=status)
                    raise NetworkTransientError(f"Remote generation answered HTTP {status}", attempts=attempt)
                else:
                    payload = response.content
                    if not payload.strip():
                        raise EmptyResponseError(f"HTTP {status} with empty body")
                    if self.cache is not None:
                        await self.cache.put(prompt.cache_key, payload, self.cache_ttl_seconds)
                    logger.info("remote_client: Response received", attempt=attempt, bytes=len(payload))
                    return payload

            if attempt < attempts and self.retry_delay_seconds > 0:
                await asyncio.sleep(self.retry_delay_seconds * (2 ** (attempt - 1)))

        raise NetworkTransientError(f"Remote generation failed after {attempts} attempts: {last_error}", attempts=attempts)
