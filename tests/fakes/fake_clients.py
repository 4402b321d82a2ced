"""Deterministic stand-ins for the embedding provider, chat model and live channel."""

import re
import zlib
from typing import Any

from langchain_core.messages import AIMessage

DIMENSION = 1536


def embed_words(text: str) -> list[float]:
    """Bag-of-words vector: each lowercase word bumps one hashed slot."""
    vector = [0.0] * DIMENSION
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        vector[zlib.crc32(word.encode()) % DIMENSION] += 1.0
    return vector


async def fake_embed(text: str) -> list[float]:
    return embed_words(text)


async def fake_embed_many(texts: list[str]) -> list[list[float]]:
    return [embed_words(t) for t in texts]


class FakeLLM:
    """Chat model double recording every prompt it receives."""

    def __init__(self, reply: str = "Happy to help!"):
        self.reply = reply
        self.calls: list[list[Any]] = []
        # Raise on these call numbers (1-based)
        self.fail_on: set[int] = set()

    async def ainvoke(self, messages: list[Any]) -> AIMessage:
        self.calls.append(list(messages))
        if len(self.calls) in self.fail_on:
            raise RuntimeError("model unavailable")
        return AIMessage(content=self.reply)

    @property
    def last_system_prompt(self) -> str:
        return self.calls[-1][0].content


class RecordingChannel:
    """Channel double collecting (event, payload) pairs."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]
