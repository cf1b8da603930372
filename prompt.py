from dataclasses import dataclass, field
from string import Formatter
from typing import Any, Dict, Sequence

from context import Exchange
from errors import TemplateError

DEFAULT_SYSTEM_MESSAGE = (
    "You are a helpful AI assistant. Provide concise and accurate responses "
    "based on the given context and relevant information. Only answer from the "
    "given data do not answer from anywhere else or your prior memory. If you "
    "are unable to find the answer in the data then simply answer 'I don't know.'"
)
DEFAULT_CONTEXT_FORMAT = "Previous conversation:\n{}\n"
DEFAULT_RELEVANT_INFO_FORMAT = "Relevant information:\n{}\n"
DEFAULT_USER_QUERY_FORMAT = "User Query: {}\nAssistant Response:"


@dataclass(frozen=True)
class RetrievedPassage:
    """
    A unit of text returned by the retriever.

    Attributes:
        text: Passage content inserted into the prompt.
        metadata: Arbitrary tags attached at ingestion time (source row id, columns, ...).
    """

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def _check_insertion_point(name: str, fmt: str) -> None:
    """
    Ensure a format string has exactly one positional ``{}`` insertion point.

    Raises:
        TemplateError: If the string is malformed or has zero or several fields.
    """
    try:
        fields = [f for _, f, _, _ in Formatter().parse(fmt) if f is not None]
    except ValueError as e:
        raise TemplateError(f"{name} is not a valid format string: {e}")

    if len(fields) != 1:
        raise TemplateError(
            f"{name} must contain exactly one '{{}}' insertion point, found {len(fields)}"
        )
    if fields[0] not in ("", "0"):
        raise TemplateError(
            f"{name} insertion point must be positional '{{}}', got '{{{fields[0]}}}'"
        )


@dataclass(frozen=True)
class PromptTemplate:
    """
    Format strings used to lay out the model input.

    Each format string carries a single ``{}`` that receives its block's text.
    Templates are validated on construction so that a broken template stops
    the service at startup rather than failing individual requests.

    Attributes:
        system_message: Instruction placed at the top of every prompt.
        context_format: Wraps the previous conversation, one turn per line.
        relevant_info_format: Wraps the retrieved passages, one per line.
        user_query_format: Wraps the current user message; always rendered last.
    """

    system_message: str = DEFAULT_SYSTEM_MESSAGE
    context_format: str = DEFAULT_CONTEXT_FORMAT
    relevant_info_format: str = DEFAULT_RELEVANT_INFO_FORMAT
    user_query_format: str = DEFAULT_USER_QUERY_FORMAT

    def __post_init__(self):
        _check_insertion_point("context_format", self.context_format)
        _check_insertion_point("relevant_info_format", self.relevant_info_format)
        _check_insertion_point("user_query_format", self.user_query_format)


def assemble_prompt(
    context: Sequence[Exchange],
    passages: Sequence[RetrievedPassage],
    query: str,
    template: PromptTemplate,
) -> str:
    """
    Compose the single prompt string sent to the model.

    Layout, in order:
      - The system message
      - The previous conversation block (omitted when there is no history)
      - The relevant information block (omitted when nothing was retrieved)
      - The user query

    The function has no side effects, so identical inputs always yield an
    identical prompt.

    Args:
        context: Snapshot of the conversation window, oldest first.
        passages: Retrieved passages in relevance order.
        query: The raw user message.
        template: Layout to render into.

    Returns:
        The assembled prompt.
    """
    parts = [template.system_message, "\n\n"]

    if context:
        history = "\n".join(exchange.render() for exchange in context)
        parts.append(template.context_format.format(history))
        parts.append("\n")

    if passages:
        relevant_info = "".join(f"{passage.text}\n" for passage in passages)
        parts.append(template.relevant_info_format.format(relevant_info))
        parts.append("\n")

    parts.append(template.user_query_format.format(query))
    return "".join(parts)
