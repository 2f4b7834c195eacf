"""AI tutor: per-user chat sessions and the model client.

Sessions live in an explicit TutorSessionStore with TTL eviction measured
from last use, so an abandoned conversation does not pin memory for the
life of the process.  History is bounded; the system prompt is always
kept at the head.

The model endpoint is any OpenAI-compatible /chat/completions API
(OpenRouter by default).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal, Protocol

import httpx

from edusmart.core.config import SETTINGS
from edusmart.core.metrics import TUTOR_ACTIVE_SESSIONS, TUTOR_REQUESTS
from edusmart.services.errors import TutorUnavailableError

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]
LearningStyle = Literal["story-based", "theory-based", "practical-based"]

DEFAULT_MAX_MESSAGES = 20

_STYLE_GUIDANCE: dict[str, str] = {
    "story-based": (
        "Use engaging stories, analogies, and real-world examples to explain "
        "concepts. Make technical ideas relatable through narrative. "
    ),
    "theory-based": (
        "Focus on theoretical foundations, principles, and systematic "
        "explanations. Break down complex concepts into fundamental components. "
    ),
    "practical-based": (
        "Emphasize hands-on learning with code examples, exercises, and "
        "real-world applications. Provide actionable steps and practical tips. "
    ),
}


def build_system_prompt(domain: str | None = None, learning_style: str | None = None) -> str:
    prompt = "You are Nova, an AI tutor on the EduSmart learning platform. "
    prompt += "You specialize in detailed, interactive learning experiences. "
    if domain:
        prompt += (
            f"You are teaching {domain}. Provide clear explanations with "
            "examples and real applications. "
        )
    if learning_style:
        prompt += _STYLE_GUIDANCE.get(learning_style, "")
    prompt += "Be engaging and conversational while maintaining educational value. "
    prompt += "If a concept is unclear, break it down into simpler parts."
    return prompt


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: Role
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True)
class TutorSession:
    user_id: str
    messages: list[ChatMessage]
    last_used: float
    domain: str | None = None
    learning_style: str | None = None


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------


@dataclass
class TutorSessionStore:
    ttl_seconds: int = SETTINGS.tutor_session_ttl_seconds
    max_messages: int = DEFAULT_MAX_MESSAGES
    clock: Callable[[], float] = time.monotonic
    _sessions: dict[str, TutorSession] = field(default_factory=dict)

    def get_or_start(
        self,
        user_id: str,
        *,
        domain: str | None = None,
        learning_style: str | None = None,
    ) -> TutorSession:
        now = self.clock()
        self.purge_expired()
        session = self._sessions.get(user_id)
        if session is None:
            session = TutorSession(
                user_id=user_id,
                messages=[ChatMessage("system", build_system_prompt(domain, learning_style))],
                last_used=now,
                domain=domain,
                learning_style=learning_style,
            )
            self._sessions[user_id] = session
            TUTOR_ACTIVE_SESSIONS.set(len(self._sessions))
        return session

    def append(self, user_id: str, message: ChatMessage) -> None:
        session = self._sessions[user_id]
        session.messages.append(message)
        session.last_used = self.clock()

        # Keep the system prompt plus the newest max_messages - 1 turns.
        if len(session.messages) > self.max_messages:
            head, tail = session.messages[0], session.messages[1:]
            session.messages = [head, *tail[-(self.max_messages - 1):]]

    def pop_last(self, user_id: str) -> ChatMessage | None:
        session = self._sessions.get(user_id)
        if session is None or len(session.messages) <= 1:
            return None
        return session.messages.pop()

    def history(self, user_id: str) -> list[ChatMessage]:
        session = self._sessions.get(user_id)
        return list(session.messages) if session else []

    def end(self, user_id: str) -> bool:
        removed = self._sessions.pop(user_id, None) is not None
        TUTOR_ACTIVE_SESSIONS.set(len(self._sessions))
        return removed

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [
            uid for uid, s in self._sessions.items() if now - s.last_used > self.ttl_seconds
        ]
        for uid in expired:
            del self._sessions[uid]
        if expired:
            logger.info("Purged %d expired tutor sessions", len(expired))
        TUTOR_ACTIVE_SESSIONS.set(len(self._sessions))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()
        TUTOR_ACTIVE_SESSIONS.set(0)


# ---------------------------------------------------------------------------
# Model client
# ---------------------------------------------------------------------------


class TutorClient(Protocol):
    async def complete(self, messages: list[ChatMessage]) -> str: ...


class OpenRouterTutorClient:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    async def complete(self, messages: list[ChatMessage]) -> str:
        payload = {
            "model": self._model,
            "messages": [m.as_dict() for m in messages],
            "temperature": 0.7,
            "max_tokens": 2048,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "X-Title": "EduSmart Tutor",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self._base_url}/chat/completions", json=payload, headers=headers
                )
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            TUTOR_REQUESTS.labels(outcome="error").inc()
            logger.error("Tutor model request failed: %s", type(e).__name__)
            raise TutorUnavailableError("tutor model request failed") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            TUTOR_REQUESTS.labels(outcome="error").inc()
            raise TutorUnavailableError("tutor model returned no content")

        TUTOR_REQUESTS.labels(outcome="ok").inc()
        return content


class TutorService:
    def __init__(self, store: TutorSessionStore, client: TutorClient) -> None:
        self._store = store
        self._client = client

    async def ask(
        self,
        user_id: str,
        message: str,
        *,
        domain: str | None = None,
        learning_style: str | None = None,
    ) -> str:
        self._store.get_or_start(user_id, domain=domain, learning_style=learning_style)
        self._store.append(user_id, ChatMessage("user", message))

        try:
            reply = await self._client.complete(self._store.history(user_id))
        except TutorUnavailableError:
            # History alternates user and assistant turns.
            self._store.pop_last(user_id)
            raise

        self._store.append(user_id, ChatMessage("assistant", reply))
        logger.debug("Tutor replied user=%s chars=%d", user_id, len(reply))
        return reply

    def end_session(self, user_id: str) -> bool:
        return self._store.end(user_id)


# ---------------------------------------------------------------------------
# Module-level singletons
# ---------------------------------------------------------------------------

tutor_sessions = TutorSessionStore()


def build_tutor_client() -> TutorClient:
    if SETTINGS.openrouter_api_key is None:
        raise TutorUnavailableError("OPENROUTER_API_KEY is not configured")
    return OpenRouterTutorClient(
        api_key=SETTINGS.openrouter_api_key,
        model=SETTINGS.openrouter_model,
        base_url=SETTINGS.openrouter_base_url,
    )
