from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Protocol
from urllib import error, request

from .config import Settings
from .errors import GenerationError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Interface for plain-text completions used by the planner."""

    def generate(self, prompt: str) -> str: ...


class OpenAIChatCompletionsAdapter:
    """Small OpenAI adapter using the chat completions REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 30.0,
        max_retries: int = 1,
        backoff_s: float = 0.2,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)

    def generate(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            # Deterministic output for planning.
            "temperature": 0,
            "messages": [{"role": "user", "content": prompt}],
        }
        logger.info(
            "Calling text generation provider=openai model=%s prompt_length=%d",
            self.model,
            len(prompt),
        )
        response_json = self._request_with_retry(payload)
        return self._extract_content(response_json)

    def _request_with_retry(self, payload: dict[str, Any]) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._request(payload)
            except (TimeoutError, ValueError, error.URLError) as exc:
                last_error = exc
                logger.warning(
                    "OpenAI request failed attempt=%d/%d model=%s reason=%s",
                    attempt + 1,
                    self.max_retries + 1,
                    self.model,
                    exc,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    time.sleep(self.backoff_s)
        raise GenerationError(f"Text generation request failed: {last_error}") from last_error

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            raw_error = exc.read().decode("utf-8", errors="replace")
            raise error.URLError(f"status {exc.code}: {raw_error[:400]}") from exc
        return json.loads(body)

    @staticmethod
    def _extract_content(response_json: dict[str, Any]) -> str:
        choices = response_json.get("choices", [])
        if not choices:
            raise GenerationError("OpenAI response did not contain choices")

        message = choices[0].get("message", {})
        content = message.get("content", "")
        if isinstance(content, str) and content.strip():
            return content
        if isinstance(content, list):
            text_segments: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text = item.get("text")
                    if isinstance(text, str):
                        text_segments.append(text)
            merged = "".join(text_segments).strip()
            if merged:
                return merged
        raise GenerationError("OpenAI response content could not be parsed as text")


class KeywordPlanGenerator:
    """Offline generator: turns the prompt's intent into a linear task chain.

    Splits the intent on newlines, " and ", " then " and ", " and picks one
    tool per step from simple keywords. Useful for dry runs and tests.
    """

    _INTENT_BLOCK = re.compile(
        r"User Intent: (.+?)(?:\n\nOutput \(JSON array only\):|\Z)", re.DOTALL
    )
    _SEPARATORS = ("\n", " and ", " then ", ", ")

    def generate(self, prompt: str) -> str:
        logger.warning("Using offline keyword plan generator")
        matches = self._INTENT_BLOCK.findall(prompt)
        intent = matches[-1].strip() if matches else ""

        tasks: list[dict[str, Any]] = []
        for index, action in enumerate(self.split_actions(intent), start=1):
            tasks.append(
                {
                    "task_id": f"task-{index:03d}",
                    "parent_id": f"task-{index - 1:03d}" if index > 1 else None,
                    "level": 3,
                    "intent": action,
                    "tools": [self.suggest_tool(action)],
                    "inputs": {"args": [], "env": {}, "files": []},
                }
            )
        return json.dumps(tasks, indent=2)

    @classmethod
    def split_actions(cls, intent: str) -> list[str]:
        actions = [intent]
        for separator in cls._SEPARATORS:
            actions = [part for action in actions for part in action.split(separator)]
        return [action.strip() for action in actions if action.strip()]

    @staticmethod
    def suggest_tool(action: str) -> str:
        lowered = action.lower()
        if any(word in lowered for word in ("readme", "file", "create")):
            return "echo"
        if any(word in lowered for word in ("lint", "test", "build")):
            return "pnpm"
        if any(word in lowered for word in ("list", "show")):
            return "ls"
        if "git" in lowered:
            return "git"
        return "echo"


def build_text_generator(settings: Settings) -> TextGenerator:
    provider = settings.llm_provider.lower().strip()
    if provider == "offline":
        return KeywordPlanGenerator()
    if provider != "openai":
        raise GenerationError(f"Unsupported LLM provider: {settings.llm_provider}")

    api_key = settings.resolved_openai_api_key()
    if not api_key:
        raise GenerationError("OPENAI_API_KEY is missing for llm_provider=openai")
    return OpenAIChatCompletionsAdapter(
        api_key=api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout_s=settings.llm_timeout_s,
        max_retries=settings.llm_max_retries,
        backoff_s=settings.llm_backoff_s,
    )
