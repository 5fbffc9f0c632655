"""OpenAI-compatible composer backend over HTTP.

Security: NEVER log the prompt, the user message or the reply text. Only log
model, status and sizes.
"""

from __future__ import annotations

import json
import os
from typing import Any

import requests

from giftly.composer.contracts import TurnContext
from giftly.composer.prompts import SYSTEM_PROMPT, build_user_prompt
from giftly.observability.logging import get_logger
from giftly.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 15.0


def _get_config() -> dict[str, Any]:
    """Get composer config from environment.

    Required env vars:
    - OPENAI_API_KEY: API token (composer disabled when unset)

    Optional:
    - OPENAI_MODEL: Model name (default: gpt-4.1-mini)
    - OPENAI_BASE_URL: API base URL (default: https://api.openai.com/v1)
    - COMPOSER_HTTP_TIMEOUT: Request timeout in seconds (default: 15)
    """
    return {
        "api_key": os.environ.get("OPENAI_API_KEY", ""),
        "model": os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
        "base_url": os.environ.get("OPENAI_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        "timeout": float(os.environ.get("COMPOSER_HTTP_TIMEOUT", str(DEFAULT_TIMEOUT))),
    }


class OpenAIComposer:
    """Chat-completions client returning the composer's JSON object.

    One attempt per turn, no retry. Every failure (transport, HTTP status,
    malformed body, non-object JSON) returns None so the caller can fall
    back to its deterministic message.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def model(self) -> str:
        return self._model

    def compose(self, context: TurnContext) -> dict[str, Any] | None:
        """Request a reply for ``context``.

        Returns:
            Parsed JSON object from the model, or None on any failure.
        """
        url = f"{self._base_url}/chat/completions"
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(context)},
            ],
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._session.post(url, json=body, headers=headers, timeout=self._timeout)
            response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"]
        except requests.RequestException as e:
            logger.warning(
                "composer request failed",
                extra={
                    "extra_fields": safe_log_context(
                        model=self._model,
                        error_type=type(e).__name__,
                    )
                },
            )
            return None
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(
                "composer response malformed",
                extra={
                    "extra_fields": safe_log_context(
                        model=self._model,
                        error_type=type(e).__name__,
                    )
                },
            )
            return None

        if not isinstance(content, str):
            return None

        try:
            parsed = json.loads(content)
        except ValueError:
            logger.warning(
                "composer reply is not json",
                extra={"extra_fields": safe_log_context(model=self._model, content_len=len(content))},
            )
            return None

        if not isinstance(parsed, dict):
            return None

        logger.info(
            "composer reply received",
            extra={"extra_fields": safe_log_context(model=self._model, content_len=len(content))},
        )
        return parsed


def get_composer() -> OpenAIComposer | None:
    """Build the configured composer, or None when OPENAI_API_KEY is unset."""
    config = _get_config()
    if not config["api_key"]:
        return None
    return OpenAIComposer(
        config["api_key"],
        model=config["model"],
        base_url=config["base_url"],
        timeout=config["timeout"],
    )
