"""Claude vision client used by the screenshot classifier.

One request carries one screenshot plus a text prompt. Every exchange is
dumped to the debug directory so a surprising AI finding can be traced back
to the exact prompt and response.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Optional

import anthropic

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

_debug_dir: Path | None = None

_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n```\s*$", re.DOTALL | re.MULTILINE)
_LINE_COMMENT = re.compile(r"(?<=[\s,\]\}])//[^\n]*")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def set_debug_dir(path: Path) -> None:
    """Route AI exchange logs into ``path`` (normally ``<reports>/debug``)."""
    global _debug_dir
    _debug_dir = Path(path)
    _debug_dir.mkdir(parents=True, exist_ok=True)


def _get_debug_dir() -> Path:
    directory = _debug_dir if _debug_dir is not None else Path("./reports") / "debug"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _json_candidates(text: str):
    """Progressively more aggressive clean-ups of a model reply."""
    text = text.strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    yield text

    cleaned = _TRAILING_COMMA.sub(r"\1", _LINE_COMMENT.sub("", text))
    yield cleaned

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        yield cleaned[start:end + 1]


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object in a model reply, tolerating fences, prose and trailing commas."""
    error: Optional[json.JSONDecodeError] = None
    for candidate in _json_candidates(text):
        try:
            return json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            error = e
    logger.debug("Unparseable AI reply (first 2000 chars):\n%s", text[:2000])
    raise ValueError(f"AI returned invalid JSON: {error}")


def _image_message(image_base64: str, media_type: str, text: str) -> dict:
    return {
        "role": "user",
        "content": [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": image_base64},
            },
            {"type": "text", "text": text},
        ],
    }


class AIClient:
    """Screenshot-in, text-out wrapper around the Anthropic Messages API."""

    def __init__(self, model: str = DEFAULT_MODEL, max_tokens: int = 4096, timeout: float = 60.0):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY is not set; AI screenshot analysis is unavailable."
            )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout)
        self.model = model
        self.max_tokens = max_tokens
        self._calls = 0

    @property
    def call_count(self) -> int:
        return self._calls

    def complete_with_image(
        self,
        system_prompt: str,
        user_message: str,
        image_base64: str,
        media_type: str = "image/png",
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send one screenshot with a prompt and return the reply text."""
        self._calls += 1
        call = self._calls
        tokens = max_tokens or self.max_tokens
        logged_message = f"[{media_type} screenshot, {len(image_base64)} base64 chars]\n{user_message}"
        logger.info("Vision call #%d to %s", call, self.model)

        started = time.time()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                system=system_prompt,
                messages=[_image_message(image_base64, media_type, user_message)],
            )
        except anthropic.APIError as e:
            logger.error("Vision call #%d failed: %s", call, e)
            self._save_exchange_log(call, system_prompt, logged_message, "", error=str(e))
            raise

        text = "".join(block.text for block in response.content if hasattr(block, "text"))
        logger.info("Vision call #%d answered in %.1fs (%d chars)", call, time.time() - started, len(text))
        if response.stop_reason == "max_tokens":
            logger.warning("Vision reply #%d hit max_tokens (%d) and may be cut off", call, tokens)

        self._save_exchange_log(call, system_prompt, logged_message, text, error=None)
        return text

    def complete_json_with_image(
        self,
        system_prompt: str,
        user_message: str,
        image_base64: str,
        max_tokens: Optional[int] = None,
    ) -> dict[str, Any]:
        text = self.complete_with_image(system_prompt, user_message, image_base64, max_tokens=max_tokens)
        return self._parse_json_response(text)

    @staticmethod
    def _parse_json_response(text: str) -> dict[str, Any]:
        return parse_json_object(text)

    @staticmethod
    def _save_exchange_log(
        call_number: int,
        system_prompt: str,
        user_message: str,
        response_text: str,
        error: str | None,
    ) -> None:
        """Dump one prompt/response pair. Logging problems never reach the caller."""
        sections = [
            (f"VISION CALL #{call_number} at {time.strftime('%Y-%m-%d %H:%M:%S')}", ""),
            (f"SYSTEM PROMPT ({len(system_prompt)} chars)", system_prompt),
            (f"USER MESSAGE ({len(user_message)} chars)", user_message),
            (f"RESPONSE ({len(response_text)} chars)", response_text or "(empty)"),
        ]
        if error:
            sections.append(("ERROR", error))

        try:
            log_file = _get_debug_dir() / f"ai_call_{time.strftime('%Y%m%d_%H%M%S')}_{call_number:03d}.log"
            log_file.write_text(
                "\n\n".join(f"=== {title} ===\n{body}" for title, body in sections),
                encoding="utf-8",
            )
            logger.debug("Vision exchange written to %s", log_file)
        except OSError as e:
            logger.debug("Could not write vision exchange log: %s", e)
