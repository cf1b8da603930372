from typing import List

from pydantic import BaseModel

from context import Role


class ChatRequest(BaseModel):
    """
    A chat message sent to the API.

    Attributes:
        msg (str): The user's message. Conversation history is kept server-side,
            so only the new message is sent.
    """

    msg: str


class ChatResponse(BaseModel):
    """
    The reply to a chat message.

    Attributes:
        message (str): The model's answer, or an error notice if generation failed.
    """

    message: str


class ContextEntry(BaseModel):
    role: Role
    text: str


class ContextView(BaseModel):
    """
    The current conversation window, oldest turn first.

    Attributes:
        max_context_length (int): Number of user/assistant pairs retained.
        entries (List[ContextEntry]): The turns currently in the window.
    """

    max_context_length: int
    entries: List[ContextEntry]
