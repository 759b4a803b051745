"""Optional AI classifier: Claude vision findings mapped into the Issue shape.

The classifier never affects release blocking. Any failure surfaces as a
``ClassifierError`` the orchestrator records on the tuple and moves past.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
import time
from collections import deque
from typing import Awaitable, Callable, Optional

import anthropic

from visual_qa.errors import ClassifierError
from visual_qa.models.config import FrameworkConfig
from visual_qa.models.issue import FixSuggestion, Issue, make_issue_id

from .client import AIClient
from .prompts.visual_qa import VISUAL_QA_SYSTEM_PROMPT, build_visual_qa_prompt

logger = logging.getLogger(__name__)

CATEGORY_TO_TYPE = {
    "layout": "layout",
    "typography": "typography",
    "colors": "visual",
    "interaction": "accessibility",
    "other": "visual",
}
_SEVERITIES = ("critical", "warning", "info")


class RateLimiter:
    """Sliding-window limiter: at most ``max_requests`` per ``window_seconds``."""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._requests: deque[float] = deque()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                while self._requests and now - self._requests[0] >= self.window_seconds:
                    self._requests.popleft()
                if len(self._requests) < self.max_requests:
                    self._requests.append(now)
                    return
                wait = self.window_seconds - (now - self._requests[0])
                logger.warning("AI rate limit reached, waiting %.1fs", wait)
                await self._sleep(wait)


def _slug(text: str, length: int = 40) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")[:length]


class VisionClassifier:
    """Classify a screenshot with Claude vision."""

    def __init__(self, config: FrameworkConfig | None = None, client: Optional[AIClient] = None):
        self.config = config or FrameworkConfig()
        self._client = client
        self.rate_limiter = RateLimiter(self.config.ai_max_requests_per_minute, 60.0)

    def _get_client(self) -> AIClient:
        if self._client is None:
            try:
                self._client = AIClient(
                    model=self.config.ai_model,
                    max_tokens=self.config.ai_max_tokens,
                    timeout=self.config.ai_timeout_seconds,
                )
            except EnvironmentError as e:
                raise ClassifierError(str(e), kind="unavailable") from e
        return self._client

    async def classify(self, png_bytes: bytes, metadata: dict) -> list[Issue]:
        """Return AI-found issues for one screenshot, or raise ClassifierError."""
        client = self._get_client()
        await self.rate_limiter.acquire()

        image_b64 = base64.standard_b64encode(png_bytes).decode("ascii")
        try:
            data = await asyncio.wait_for(
                asyncio.to_thread(
                    client.complete_json_with_image,
                    VISUAL_QA_SYSTEM_PROMPT,
                    build_visual_qa_prompt(metadata),
                    image_b64,
                ),
                timeout=self.config.ai_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ClassifierError(
                f"AI analysis timed out after {self.config.ai_timeout_seconds}s", kind="timeout",
            ) from e
        except anthropic.RateLimitError as e:
            raise ClassifierError(f"AI rate limited: {e}", kind="rate_limit") from e
        except anthropic.APITimeoutError as e:
            raise ClassifierError(f"AI request timed out: {e}", kind="timeout") from e
        except anthropic.APIError as e:
            raise ClassifierError(f"AI request failed: {e}", kind="api_error") from e
        except ValueError as e:
            raise ClassifierError(str(e), kind="parse_error") from e

        try:
            issues = self._to_issues(data, metadata)
        except (TypeError, ValueError) as e:
            raise ClassifierError(f"AI response has an unexpected shape: {e}", kind="parse_error") from e
        logger.info("AI classifier found %d issues on %s", len(issues), metadata.get("device", "?"))
        return issues

    def _to_issues(self, data: dict, metadata: dict) -> list[Issue]:
        raw_issues = data.get("issues") if isinstance(data, dict) else None
        if not isinstance(raw_issues, list):
            raise ClassifierError("AI response has no issues list", kind="parse_error")

        device = metadata.get("device", "unknown")
        device_id = metadata.get("deviceId", device)
        issues = []
        for raw in raw_issues:
            if not isinstance(raw, dict) or not raw.get("message"):
                continue
            message = str(raw["message"])
            location = str(raw.get("location") or "")
            recommendation = raw.get("recommendation")
            severity = str(raw.get("severity"))
            if severity not in _SEVERITIES:
                severity = "info"

            issues.append(Issue(
                id=make_issue_id("ai", _slug(message), device_id),
                type=CATEGORY_TO_TYPE.get(str(raw.get("category")), "visual"),
                severity=severity,
                title=message[:120],
                description=f"{message} ({location})" if location else message,
                device=device,
                fix=FixSuggestion(
                    action="review",
                    target=location or "page",
                    suggestion=str(recommendation),
                ) if recommendation else None,
                blocks_release=False,
                color_scheme=metadata.get("colorScheme", "light"),
                source="ai",
            ))
        return issues
