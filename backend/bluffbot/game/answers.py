"""Synthetic answers for the "spot the bot" slot of every round.

The provider is called outside any room lock with a hard deadline. Whatever
happens (timeout, API error, empty reply) the caller gets *some* text back,
because the round cannot reach the voting phase until that slot is filled.
"""

from __future__ import annotations

import logging
import random
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable

from .errors import ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)

AnswerProvider = Callable[[str], str]

DEFAULT_TIMEOUT_SEC = 10.0

FALLBACK_ANSWERS = [
    "Honestly, it depends on the day.",
    "Probably the obvious one, right?",
    "I'd have to go with my gut on this.",
    "Hard to say, but I'll say yes.",
    "That's a tough one. Pizza?",
    "No idea, but I'm confident about it.",
    "Something my grandma used to say.",
    "Definitely not what you'd expect.",
]

SYSTEM_PROMPT = (
    "You are playing a party game where players try to tell your answer apart "
    "from human answers. Reply to the question the way a casual human player "
    "would: one short sentence, informal, no more than 15 words, no emojis, "
    "never mention that you are an AI."
)

# Max 4 provider calls in flight across all rooms.
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="answer-provider")


def fallback_answer() -> str:
    return random.choice(FALLBACK_ANSWERS)


def call_provider(question: str, provider: AnswerProvider, timeout: float = DEFAULT_TIMEOUT_SEC) -> str:
    """Run ``provider`` with a deadline; raises ``ProviderTimeout`` past it."""
    future = _executor.submit(provider, question)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as exc:
        future.cancel()
        raise ProviderTimeout(f"no answer within {timeout}s") from exc


def request_synthetic_answer(
    question: str,
    provider: AnswerProvider,
    timeout: float = DEFAULT_TIMEOUT_SEC,
) -> str:
    """Ask ``provider`` for an answer, falling back to a canned phrase."""
    try:
        text = call_provider(question, provider, timeout)
    except ProviderTimeout as e:
        logger.warning("Answer provider timed out: %s", e)
        return fallback_answer()
    except Exception as e:
        logger.warning("Answer provider failed: %s", e)
        return fallback_answer()

    text = (text or "").strip() if isinstance(text, str) else ""
    if not text:
        logger.warning("Answer provider returned an empty reply")
        return fallback_answer()
    return text


class StaticAnswerProvider:
    """Offline provider: a fixed text, or a random canned phrase if none is given."""

    def __init__(self, text: str | None = None):
        self.text = text

    def __call__(self, question: str) -> str:
        return self.text or fallback_answer()


class OpenAIAnswerProvider:
    """Answer questions through the OpenAI chat completions API."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", timeout: float = DEFAULT_TIMEOUT_SEC):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = None

    def get_client(self):
        """Get or create the OpenAI client."""
        if self._client is None:
            from openai import OpenAI

            # Single attempt: the fallback phrase is the retry policy.
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def __call__(self, question: str) -> str:
        import openai

        try:
            response = self.get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": question},
                ],
                max_tokens=60,
                temperature=0.9,
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeout(str(e)) from e
        except openai.OpenAIError as e:
            raise ProviderError(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderError("empty completion")
        return content.strip()


def build_answer_provider(config) -> AnswerProvider:
    api_key = getattr(config, "OPENAI_API_KEY", "") or ""
    timeout = float(getattr(config, "SYNTHETIC_ANSWER_TIMEOUT_SEC", DEFAULT_TIMEOUT_SEC))
    if api_key:
        model = getattr(config, "OPENAI_MODEL", "gpt-4o-mini")
        logger.info("Synthetic answers from OpenAI model %s", model)
        return OpenAIAnswerProvider(api_key=api_key, model=model, timeout=timeout)
    logger.info("OPENAI_API_KEY not set, synthetic answers use a static reply")
    return StaticAnswerProvider()
