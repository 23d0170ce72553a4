"""Chat-completion client for the Perplexity API."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx

from pplx_agent.config import DEFAULT_API_BASE_URL
from pplx_agent.conversation import ConversationTurn
from pplx_agent.exceptions import ApiError

logger = logging.getLogger(__name__)

# Rough Sonar Pro pricing, USD per million tokens
INPUT_COST_PER_MILLION = 3.0
OUTPUT_COST_PER_MILLION = 15.0
CHARS_PER_TOKEN = 4


@dataclass
class Usage:
    """Token usage for a single request."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    estimated: bool = False

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def cost(self) -> float:
        return estimate_cost(self.prompt_tokens, self.completion_tokens)


@dataclass
class ChatResponse:
    """Reply text plus usage."""

    text: str
    usage: Usage = field(default_factory=Usage)
    model: str = ""
    duration_ms: float = 0.0
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class UsageStats:
    """Running totals for the process."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0
    request_count: int = 0
    total_latency_ms: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def avg_latency_ms(self) -> float:
        if not self.request_count:
            return 0.0
        return self.total_latency_ms / self.request_count

    def record(self, response: ChatResponse) -> None:
        self.prompt_tokens += response.usage.prompt_tokens
        self.completion_tokens += response.usage.completion_tokens
        self.cost += response.usage.cost
        self.request_count += 1
        self.total_latency_ms += response.duration_ms

    def reset(self) -> None:
        self.prompt_tokens = 0
        self.completion_tokens = 0
        self.cost = 0.0
        self.request_count = 0
        self.total_latency_ms = 0.0


def estimate_cost(prompt_tokens: int, completion_tokens: int) -> float:
    return (
        prompt_tokens / 1_000_000 * INPUT_COST_PER_MILLION
        + completion_tokens / 1_000_000 * OUTPUT_COST_PER_MILLION
    )


def _to_messages(turns: Iterable[ConversationTurn | dict[str, str]]) -> list[dict[str, str]]:
    messages = []
    for turn in turns:
        if isinstance(turn, ConversationTurn):
            messages.append(turn.to_dict())
        else:
            messages.append({"role": turn["role"], "content": turn["content"]})
    return messages


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return "Unknown error"


class ChatClient:
    """Synchronous request/response client: one POST per call, no retries."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 120.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.Client(timeout=timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def send(
        self,
        turns: Iterable[ConversationTurn | dict[str, str]],
        *,
        model: str,
        temperature: float,
    ) -> ChatResponse:
        """Send the turns and return the first choice.

        Raises:
            ApiError: On a non-2xx response or a transport failure
        """
        messages = _to_messages(turns)
        body = {"model": model, "messages": messages, "temperature": temperature}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        logger.debug("Sending chat request", extra={"model": model, "messages": len(messages)})
        start = time.perf_counter()
        try:
            response = self._http.post(self.endpoint, headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise ApiError(f"API Error: {exc}") from exc
        duration_ms = (time.perf_counter() - start) * 1000

        if response.status_code >= 400:
            raise ApiError(f"API Error: {_error_message(response)}", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError("API Error: response was not JSON", status_code=response.status_code) from exc

        text = _extract_text(payload)
        usage = _extract_usage(payload, messages, text)
        logger.info(
            "Chat request complete",
            extra={
                "model": model,
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "duration_ms": round(duration_ms, 1),
            },
        )
        return ChatResponse(text=text, usage=usage, model=model, duration_ms=duration_ms, raw=payload)

    def close(self) -> None:
        self._http.close()


def _extract_text(payload: Any) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return json.dumps(payload)
    return content if content is not None else json.dumps(payload)


def _extract_usage(payload: Any, messages: list[dict[str, str]], text: str) -> Usage:
    usage = payload.get("usage") if isinstance(payload, dict) else None
    if isinstance(usage, dict):
        return Usage(
            prompt_tokens=int(usage.get("prompt_tokens") or 0),
            completion_tokens=int(usage.get("completion_tokens") or 0),
        )
    return Usage(
        prompt_tokens=len(json.dumps(messages)) // CHARS_PER_TOKEN,
        completion_tokens=len(text) // CHARS_PER_TOKEN,
        estimated=True,
    )
