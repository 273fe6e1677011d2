"""
Removes ``<think>...</think>`` spans from a streamed model reply.

The model may split a tag across any number of fragments, so the filter
holds back a short tail of text that could still turn into a tag. The core
is a pure step function over an immutable state; ``ThinkTagFilter`` wraps
it for callers that prefer an object.
"""

from dataclasses import dataclass

START_TAG = "<think>"
END_TAG = "</think>"


@dataclass(frozen=True)
class FilterState:
    is_thinking: bool = False
    buffer: str = ""


def advance(state: FilterState, content: str) -> tuple[list[str], FilterState]:
    """
    Feed one fragment into the filter.

    Args:
        state: State left by the previous fragment.
        content: The raw fragment, of any size.

    Returns:
        Tuple of (clean deltas ready to emit, new state).
    """
    if not content:
        return [], state

    emitted: list[str] = []
    is_thinking = state.is_thinking
    buffer = state.buffer + content

    while True:
        if not is_thinking:
            i = buffer.find(START_TAG)
            if i >= 0:
                if i > 0:
                    emitted.append(buffer[:i])
                is_thinking = True
                buffer = buffer[i + len(START_TAG):]
                continue
            # The last len(START_TAG) characters may be the start of a tag.
            if len(buffer) > len(START_TAG):
                emitted.append(buffer[: len(buffer) - len(START_TAG)])
                buffer = buffer[len(buffer) - len(START_TAG):]
            break

        j = buffer.find(END_TAG)
        if j >= 0:
            is_thinking = False
            buffer = buffer[j + len(END_TAG):]
            continue
        buffer = buffer[-len(END_TAG):]
        break

    return emitted, FilterState(is_thinking=is_thinking, buffer=buffer)


def finish(state: FilterState) -> str:
    """Return the text still owed to the client once the stream has ended.

    An unterminated thought is dropped, never emitted.
    """
    if state.is_thinking:
        return ""
    return state.buffer


class ThinkTagFilter:
    """Stateful wrapper around advance/finish for a single response stream."""

    def __init__(self) -> None:
        self._state = FilterState()

    @property
    def is_thinking(self) -> bool:
        return self._state.is_thinking

    def feed(self, content: str) -> list[str]:
        emitted, self._state = advance(self._state, content)
        return emitted

    def flush(self) -> str:
        residue = finish(self._state)
        self._state = FilterState()
        return residue
