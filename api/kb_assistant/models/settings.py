"""
Guardrail settings: the versioned configuration edited by administrators.

Stored settings carry only the fields an administrator has set. The single
merge function below fills every gap from the built-in defaults.
"""

from pydantic import BaseModel, ConfigDict, Field

SETTINGS_VERSION = 1

DEFAULT_ASSISTANT_NAME = "Knowledge Base Assistant"

DEFAULT_COMPETITORS = [
    "Odoo",
    "Salesforce",
    "HubSpot",
    "Microsoft Dynamics",
    "SAP",
    "Oracle",
    "NetSuite",
    "Freshworks",
    "Monday.com",
]

DEFAULT_COMPETITOR_REDIRECT = (
    "I don't have information about that in my knowledge base. However, I'd be "
    "happy to help you with questions about our products and services! "
    "What would you like to know?"
)

DEFAULT_NO_INFORMATION = (
    "I don't have that information in the uploaded documents. However, I'd be "
    "happy to help you with questions about our products! What would you like to know?"
)

DEFAULT_SYSTEM_PROMPT_TEMPLATE = """\
You are {assistant_name}. You MUST follow these rules STRICTLY:

ABSOLUTE PROHIBITIONS:
1. DO NOT provide ANY information about competitors ({competitors}).
2. DO NOT use general knowledge or training data. ONLY use the provided documents.
3. DO NOT create "Alternative Answers" or provide general information when the documents don't have the answer.
4. DO NOT discuss, compare, or mention competitor features, pricing, or capabilities.

REQUIRED BEHAVIOR FOR COMPETITOR QUESTIONS:
Respond with EXACTLY this and NOTHING else:

"{competitor_redirect}"

REQUIRED BEHAVIOR FOR NON-DOCUMENT QUESTIONS:
Respond with:

"{no_information}"

FREQUENTLY ASKED QUESTIONS:
{faq}

FORMATTING (when answering from documents):
- Use ## for headings
- Use bullet points (-) for lists
- Use **bold** for key terms
- Cite sources as [Source N]
- Keep paragraphs short (2-3 sentences)
"""


class CannedMessages(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    competitor_redirect: str | None = Field(None, alias="competitorRedirect")
    no_information: str | None = Field(None, alias="noInformation")


class FaqEntry(BaseModel):
    question: str
    answer: str


class GuardrailSettings(BaseModel):
    """Guardrail settings as stored; every field is optional."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = SETTINGS_VERSION
    assistant_name: str | None = Field(None, alias="assistantName")
    system_prompt_template: str | None = Field(None, alias="systemPromptTemplate")
    competitor_list: list[str] | None = Field(None, alias="competitorList")
    canned_messages: CannedMessages | None = Field(None, alias="cannedMessages")
    faq_list: list[FaqEntry] | None = Field(None, alias="faqList")
    model_id: str | None = Field(None, alias="modelId")


class ResolvedGuardrails(BaseModel):
    """Guardrail settings with every field filled in."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: int = SETTINGS_VERSION
    assistant_name: str = Field(DEFAULT_ASSISTANT_NAME, alias="assistantName")
    system_prompt_template: str = Field(
        DEFAULT_SYSTEM_PROMPT_TEMPLATE, alias="systemPromptTemplate"
    )
    competitor_list: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COMPETITORS), alias="competitorList"
    )
    competitor_redirect: str = Field(DEFAULT_COMPETITOR_REDIRECT, alias="competitorRedirect")
    no_information: str = Field(DEFAULT_NO_INFORMATION, alias="noInformation")
    faq_list: list[FaqEntry] = Field(default_factory=list, alias="faqList")
    model_id: str | None = Field(None, alias="modelId")


def merge_with_defaults(stored: GuardrailSettings | None) -> ResolvedGuardrails:
    """
    Fill unset fields from the defaults.

    A stored value wins whenever it is not None, including empty strings and
    empty lists. Canned messages merge field by field with the same rule.
    """
    defaults = ResolvedGuardrails()
    if stored is None:
        return defaults

    canned = stored.canned_messages or CannedMessages()

    def pick(value, default):
        return default if value is None else value

    return ResolvedGuardrails(
        version=stored.version,
        assistant_name=pick(stored.assistant_name, defaults.assistant_name),
        system_prompt_template=pick(
            stored.system_prompt_template, defaults.system_prompt_template
        ),
        competitor_list=pick(stored.competitor_list, defaults.competitor_list),
        competitor_redirect=pick(canned.competitor_redirect, defaults.competitor_redirect),
        no_information=pick(canned.no_information, defaults.no_information),
        faq_list=pick(stored.faq_list, defaults.faq_list),
        model_id=pick(stored.model_id, defaults.model_id),
    )
