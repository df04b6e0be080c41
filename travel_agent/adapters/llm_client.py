"""Chat completion client for OpenAI-compatible model endpoints."""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from openai import AsyncOpenAI

from travel_agent.infra.config import config
from travel_agent.infra.error_handler import EndpointError, ErrorCategory, classify_error
from travel_agent.infra.metrics import llm_calls_total, llm_call_duration
from travel_agent.models.conversation import ModelEndpoint

logger = logging.getLogger(__name__)


class CompletionClient:
    """Client for chat completions against one or more model endpoints."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self._api_key = api_key
        self._base_url = base_url
        self._client = None

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of the OpenAI client."""
        if self._client is None:
            api_key = self._api_key or config.LLM_API_KEY
            if not api_key:
                raise EndpointError("LLM_API_KEY not configured", ErrorCategory.AUTH_ERROR)
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self._base_url or config.LLM_BASE_URL,
                max_retries=0,  # Fallback to the next endpoint replaces SDK retries
            )
        return self._client

    async def complete(
        self,
        endpoint: ModelEndpoint,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Request one chat completion.

        Args:
            endpoint: Model endpoint to call
            messages: Conversation turn as role/content dicts
            max_tokens: Completion token limit
            temperature: Sampling temperature
            timeout: Seconds before the attempt is abandoned

        Returns:
            Assistant text (never empty)

        Raises:
            EndpointError: On transport errors, non-2xx responses, timeouts or empty completions
        """
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=endpoint.identifier,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=timeout or config.LLM_CALL_TIMEOUT,
            )
        except EndpointError:
            llm_calls_total.labels(model=endpoint.identifier, status="failure").inc()
            raise
        except Exception as e:
            category, _ = classify_error(e)
            llm_calls_total.labels(model=endpoint.identifier, status="failure").inc()
            raise EndpointError(
                f"Completion failed on {endpoint.identifier}: {type(e).__name__}: {e}",
                category,
                endpoint=endpoint.identifier,
            ) from e
        finally:
            llm_call_duration.labels(model=endpoint.identifier).observe(time.time() - start_time)

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        if not content.strip():
            llm_calls_total.labels(model=endpoint.identifier, status="empty").inc()
            raise EndpointError(
                f"Empty completion from {endpoint.identifier}",
                ErrorCategory.EMPTY_RESPONSE,
                endpoint=endpoint.identifier,
            )

        llm_calls_total.labels(model=endpoint.identifier, status="success").inc()
        return content


completion_client = CompletionClient()
