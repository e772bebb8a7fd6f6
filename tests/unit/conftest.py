"""Unit test fixtures.

These fixtures provide:
- A DeepCitationClient wired to an ``httpx.MockTransport``
- A recorder for warnings sent to ``on_warning`` hooks
"""

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from deep_citation.services.verification.client import DeepCitationClient

API_URL = "https://api.test"

Handler = Callable[[httpx.Request], Any]


@pytest.fixture
def make_client() -> Callable[..., DeepCitationClient]:
    """Build a client whose requests are answered by ``handler``."""

    def _make(handler: Handler, **kwargs: Any) -> DeepCitationClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("api_key", "test-key")
        kwargs.setdefault("api_url", API_URL)
        return DeepCitationClient(http_client=http_client, **kwargs)

    return _make


@pytest.fixture
def warnings_seen() -> list[str]:
    """List that collects messages passed to an ``on_warning`` hook."""
    return []
