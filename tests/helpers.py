from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

from personal_assistant.app import create_app
from personal_assistant.storage import MemoryStorage


TEST_CONFIG = {
    "TESTING": True,
    "GEMINI_API_KEY": "test-key",
    "GEMINI_MODEL": "test-model",
    "LOG_LEVEL": "CRITICAL",
}


def make_app(storage=None, **overrides: Any):
    config = dict(TEST_CONFIG)
    config.update(overrides)
    return create_app(config, storage=storage if storage is not None else MemoryStorage())


def gemini_response(text: str | None = None, status: int = 200, body: Any = None) -> MagicMock:
    """Stand-in for the requests.Response of a generateContent call."""
    if body is None:
        body = {"candidates": [{"content": {"parts": [{"text": text or ""}]}}]}
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.json.return_value = body
    response.text = json.dumps(body)
    return response
