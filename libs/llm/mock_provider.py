"""Mock LLM provider for tests and local development.

Either replays canned responses (strings are returned as completions,
exceptions are raised) or, with no script, answers every prompt by matching
all listed jobs with a deterministic, well-formed JSON payload.
"""
import json
import re
from typing import List, Optional, Sequence, Union

from .provider_base import LLMProvider, LLMResponse

JOB_LINE = re.compile(r"^(\d+): (.+?) \| (.+?) \| (.*?)(?: \||$)")

Scripted = Union[str, BaseException]


class MockLLMProvider(LLMProvider):
    def __init__(self, responses: Optional[Sequence[Scripted]] = None, model: str = "mock-matcher"):
        self._responses: List[Scripted] = list(responses or [])
        self.model = model
        self.calls: List[dict] = []

    def complete(self, system_prompt: str, user_prompt: str, temperature: float = 0.3,
                 max_tokens: int = 2000) -> LLMResponse:
        self.calls.append({"system": system_prompt, "user": user_prompt, "temperature": temperature})
        if self._responses:
            item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
            if isinstance(item, BaseException):
                raise item
            content = item
        else:
            content = self._generate(user_prompt)
        return LLMResponse(
            content=content,
            model_used=self.model,
            tokens_used=len(user_prompt.split()) + len(content.split()),
        )

    def _generate(self, prompt: str) -> str:
        matches = []
        for line in prompt.splitlines():
            m = JOB_LINE.match(line.strip())
            if not m:
                continue
            index, title, company, city = int(m.group(1)), m.group(2), m.group(3), m.group(4)
            matches.append({
                "jobIndex": index,
                "matchScore": max(60, 88 - index * 3),
                "confidenceScore": 85,
                "matchReason": (
                    f"{title} at {company} in {city} fits the candidate's career path and target location, "
                    f"offers a supportive team environment to learn and develop core professional skills, "
                    f"and provides a realistic entry point with clear growth opportunity for their future career"
                ),
            })
        return json.dumps({"matches": matches})

    def get_model_name(self) -> str:
        return self.model

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return 0.0
