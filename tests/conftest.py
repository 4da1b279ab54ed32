"""Pytest configuration and shared fixtures."""
import json
import os
from collections.abc import Callable

import httpx
import pytest

from aicore.llm import ModelCatalog
from aicore.storage import create_storage_backend

Handler = Callable[[httpx.Request], httpx.Response]


def openai_completion(content: str, prompt_tokens: int = 5, completion_tokens: int = 3,
                      model: str = "gpt-4o") -> dict:
    """Chat completion body as returned by the OpenAI API."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1717000000,
        "model": model,
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def anthropic_message(*texts: str, input_tokens: int = 10, output_tokens: int = 4,
                      model: str = "claude-sonnet-4-20250514") -> dict:
    """Messages API body as returned by the Anthropic API."""
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": [{"type": "text", "text": text} for text in texts],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


class VendorStub:
    """Records requests and answers them with a handler."""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]

    def client(self) -> httpx.AsyncClient:
        """SDK transport backed by this stub; providers leave it open on close."""
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def vendor() -> Callable[[Handler], VendorStub]:
    """Build a stub vendor from a request handler."""
    return VendorStub


@pytest.fixture
def catalog() -> ModelCatalog:
    """Isolated model catalog cache."""
    return ModelCatalog()


@pytest.fixture(params=["memory", "sqlite"])
def make_storage(request, tmp_path):
    """Factory for an unconnected storage backend of each kind.

    Use as ``async with make_storage() as storage``.
    """
    def factory(**kwargs):
        if request.param == "sqlite":
            kwargs.setdefault("path", tmp_path / "aicore.db")
        return create_storage_backend(request.param, **kwargs)
    return factory


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
        "anthropic": os.getenv("ANTHROPIC_API_KEY")
    }
