"""
Approximate token accounting for usage metering.

Not a tokenizer: one token is counted per four characters, rounded up.
"""

import math
from collections.abc import Iterable

from kb_assistant.models.chat import ChatMessage

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_prompt_tokens(messages: Iterable[ChatMessage]) -> int:
    """Estimate tokens for the outbound prompt, contents concatenated in send order."""
    return estimate_tokens("".join(message.content for message in messages))


class TokenAccountant:
    """
    Tracks token usage for one request.

    Raw output is counted before the think filter runs: hidden reasoning is
    still billed by the provider.
    """

    def __init__(self, tokens_in: int = 0) -> None:
        self.tokens_in = tokens_in
        self._output_chars = 0

    def observe_output(self, fragment: str) -> None:
        self._output_chars += len(fragment)

    @property
    def tokens_out(self) -> int:
        return math.ceil(self._output_chars / CHARS_PER_TOKEN)
