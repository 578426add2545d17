"""Judge client: HTTP connection to a chat or text-completion backend.

The orchestrator injects a judge callable matching the protocol:

    async def __call__(self, system_prompt: str, history: list[dict], question: str) -> str: ...

`history` is the trailing conversation window as
[{"role": "user" | "assistant", "content": "..."}]. The return value is the
raw judge text; parsing and validation happen in soup_sleuth.judgment.

Production code constructs an HttpJudge from config and passes it to
run_turn(). Tests use StubJudge (defined in the test helpers) instead.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every judge implementation must match this signature
# ---------------------------------------------------------------------------

class Judge(Protocol):
    async def __call__(
        self, system_prompt: str, history: list[dict[str, str]], question: str
    ) -> str: ...


# ---------------------------------------------------------------------------
# HttpJudge: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "koboldcpp"]


class HttpJudge:
    """Async HTTP client for judge backends.

    Supported formats:
      "openai"     POST /v1/chat/completions  {"model", "messages", "response_format"}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "koboldcpp"  POST /api/v1/generate      {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}
                     The conversation is flattened into a single prompt.

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.openai.com".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 30.
        temperature:     Sampling temperature sent with openai requests.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 30.0,
        temperature: float = 0.7,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._temperature = temperature

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(
        self, system_prompt: str, history: list[dict[str, str]], question: str
    ) -> tuple[str, dict[str, Any]]:
        """Return (url, body) for the configured format."""
        if self._format == "openai":
            url = f"{self._base_url}/v1/chat/completions"
            messages = [{"role": "system", "content": system_prompt}]
            messages.extend(history)
            messages.append({"role": "user", "content": question})
            body: dict[str, Any] = {
                "messages": messages,
                "response_format": {"type": "json_object"},
                "temperature": self._temperature,
            }
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": flatten_conversation(system_prompt, history, question)}

    def _parse_response(self, data: Any) -> str:
        """Extract the completion text from the response body."""
        if not isinstance(data, dict):
            raise JudgeError("Judge backend returned a non-object response")
        if self._format == "openai":
            choices = data.get("choices")
            if (
                not isinstance(choices, list)
                or not choices
                or not isinstance(choices[0], dict)
                or not isinstance(choices[0].get("message"), dict)
            ):
                raise JudgeError("Unexpected response format from OpenAI-compatible backend")
            content = choices[0]["message"].get("content")
            if not content:
                raise JudgeError("No response from judge")
            return content

        results = data.get("results")
        if (
            not isinstance(results, list)
            or not results
            or not isinstance(results[0], dict)
            or "text" not in results[0]
        ):
            raise JudgeError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(
        self, system_prompt: str, history: list[dict[str, str]], question: str
    ) -> str:
        url, body = self._build_request(system_prompt, history, question)
        logger.debug(
            "judge call url=%s history=%d question_len=%d", url, len(history), len(question)
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise JudgeError(f"Cannot connect to judge backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise JudgeError(
                f"Judge backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise JudgeError(f"Judge backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise JudgeError(f"Judge request failed: {e.__class__.__name__}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise JudgeError("Judge backend returned a non-JSON body") from e
        text = self._parse_response(data)
        logger.debug("judge response len=%d", len(text))
        return text


def flatten_conversation(
    system_prompt: str, history: list[dict[str, str]], question: str
) -> str:
    """Render a chat conversation as one text-completion prompt."""
    parts = [system_prompt.strip(), ""]
    for turn in history:
        speaker = "Player" if turn["role"] == "user" else "Game Master"
        parts.append(f"{speaker}: {turn['content']}")
    parts.append(f"Player: {question}")
    parts.append("Game Master (JSON only):")
    return "\n".join(parts)


def judge_from_config(config: dict[str, Any]) -> HttpJudge:
    """Build an HttpJudge from the "judge" block of the app config."""
    judge_cfg = config["judge"]
    return HttpJudge(
        provider_url=judge_cfg["provider_url"],
        api_key=judge_cfg.get("api_key", ""),
        provider_format=judge_cfg.get("provider_format", "openai"),
        model=judge_cfg.get("model", ""),
        timeout=float(judge_cfg.get("timeout", 30)),
        temperature=float(judge_cfg.get("temperature", 0.7)),
    )


# ---------------------------------------------------------------------------
# JudgeError: raised for all connection, protocol and output failures
# ---------------------------------------------------------------------------

class JudgeError(RuntimeError):
    """Raised when the judge cannot be reached or returns unusable output.

    Always retryable: the session is left untouched and the player may
    resubmit the same question.
    """
