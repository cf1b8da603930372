import logging

from fastapi import APIRouter, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from models import ChatRequest, ChatResponse, ContextEntry, ContextView

router = APIRouter()
logger = logging.getLogger(__name__)


async def invalid_request_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Reply to malformed request bodies with a plain 400 error.

    Returns:
        A JSON response: {"error": "Invalid request"}
    """
    logger.debug(f"🚫 Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request"}
    )


@router.post("/chat", status_code=status.HTTP_201_CREATED, response_model=ChatResponse)
async def chat(request: Request, payload: ChatRequest):
    """
    Handle a Retrieval-Augmented Generation (RAG) chat message.

    Combines search results from Qdrant with the server-side conversation
    history to build a prompt and sends it to the configured LLM.

    Args:
        request: FastAPI request context, used to access the pipeline.
        payload: ChatRequest containing the user message.

    Returns:
        A JSON response with the model's generated answer:
            {"message": "<text>"}
    """
    pipeline = request.app.state.pipeline
    message = await pipeline.handle_message(payload.msg)
    return ChatResponse(message=message)


@router.get("/context", response_model=ContextView)
async def get_context(request: Request):
    """
    Return the conversation window currently fed into prompts.

    Returns:
        A JSON object containing:
            - max_context_length: Number of user/assistant pairs retained
            - entries: List of {"role": "User" | "Assistant", "text": str}, oldest first
    """
    context = request.app.state.pipeline.context
    return ContextView(
        max_context_length=context.max_context_length,
        entries=[ContextEntry(role=e.role, text=e.text) for e in context.snapshot()],
    )


@router.delete("/context", status_code=status.HTTP_204_NO_CONTENT)
async def clear_context(request: Request):
    """Forget the conversation history."""
    request.app.state.pipeline.context.clear()
    logger.info("🗑️  Conversation context cleared")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
