"""LLM adapters for the post-import advisory check.

``OpenAILLMAdapter`` talks to any OpenAI-compatible chat completion API;
``MockLLMAdapter`` returns a canned report for tests and offline runs.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from openai import OpenAI

_SYSTEM_MESSAGE = "You review social media analytics imports and answer with one JSON object."


class BaseLLMAdapter(ABC):
    """Minimal interface the advisory checker depends on."""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Return the raw model answer for ``prompt`` (expected to be JSON)."""


class OpenAILLMAdapter(BaseLLMAdapter):
    """Deterministic, non-streaming chat completion in JSON mode."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1024,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if base_url:
            client_kwargs["base_url"] = base_url
        if timeout is not None:
            client_kwargs["timeout"] = timeout

        self._client = OpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    def generate(self, prompt: str) -> str:
        response = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": _SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            temperature=0,
            max_tokens=self._max_tokens,
            response_format={"type": "json_object"},
            stream=False,
        )
        return response.choices[0].message.content or ""


_MOCK_REPORT: Dict[str, Any] = {
    "status": "success",
    "summary": "Mock advisory report for testing purposes.",
    "details": ["Import statistics received."],
    "issues": [],
    "recommendations": ["Verify integration with the advisory endpoint."],
}


class MockLLMAdapter(BaseLLMAdapter):
    """Returns a fixed report and remembers every prompt it was given."""

    def __init__(self, report: Optional[Dict[str, Any]] = None) -> None:
        self._response = json.dumps(report if report is not None else _MOCK_REPORT, indent=2)
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._response
