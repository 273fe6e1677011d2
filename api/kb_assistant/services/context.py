"""
Retrieval context and prompt assembly.

Passages are numbered once, in ranking order, and the same numbers are used
for the [Source N] labels shown to the model and for the citation list sent
to the client at the end of the stream.
"""

from dataclasses import dataclass, field

from kb_assistant.models.chat import ChatMessage, RetrievedPassage, SourceCitation
from kb_assistant.models.settings import FaqEntry, ResolvedGuardrails

CONTEXT_PREAMBLE = "Here is relevant information from the documents:\n\n"


@dataclass(frozen=True)
class RetrievalContext:
    text: str = ""
    citations: tuple[SourceCitation, ...] = field(default_factory=tuple)


def build_retrieval_context(passages: list[RetrievedPassage]) -> RetrievalContext:
    """Label each passage [Source N] and build the matching citation list."""
    parts = []
    citations = []
    for index, passage in enumerate(passages, start=1):
        parts.append(f"[Source {index}]: {passage.content}")
        citations.append(
            SourceCitation(
                index=index,
                filename=passage.metadata.filename or "Unknown",
                chunk_index=passage.metadata.chunk_index,
            )
        )
    return RetrievalContext(text="\n\n".join(parts), citations=tuple(citations))


def _format_faq(entries: list[FaqEntry]) -> str:
    if not entries:
        return "None configured."
    return "\n\n".join(f"Q: {entry.question}\nA: {entry.answer}" for entry in entries)


def render_system_prompt(guardrails: ResolvedGuardrails) -> str:
    """Substitute the named placeholders of the guardrail template verbatim."""
    replacements = {
        "{assistant_name}": guardrails.assistant_name,
        "{competitors}": ", ".join(guardrails.competitor_list),
        "{competitor_redirect}": guardrails.competitor_redirect,
        "{no_information}": guardrails.no_information,
        "{faq}": _format_faq(guardrails.faq_list),
    }
    prompt = guardrails.system_prompt_template
    for placeholder, value in replacements.items():
        prompt = prompt.replace(placeholder, value)
    return prompt


def build_messages(
    system_prompt: str,
    history: list[ChatMessage],
    question: str,
    context: RetrievalContext,
) -> list[ChatMessage]:
    """Assemble the LLM conversation: system + caller history + user turn."""
    if context.text:
        user_content = f"{CONTEXT_PREAMBLE}{context.text}\n\nQuestion: {question}"
    else:
        user_content = question

    return [
        ChatMessage(role="system", content=system_prompt),
        *history,
        ChatMessage(role="user", content=user_content),
    ]
