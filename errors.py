"""Exceptions raised by the chat pipeline and its collaborators."""


class ChatError(Exception):
    """Base class for chat pipeline errors."""


class RetrievalError(ChatError):
    """Raised when the document store cannot be searched."""


class GenerationError(ChatError):
    """Raised when the language model fails to produce a response."""


class TemplateError(ChatError, ValueError):
    """Raised when a prompt template format string is unusable."""
