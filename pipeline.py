import logging
from typing import List

from context import ConversationContext
from errors import GenerationError, RetrievalError
from llm import Responder
from prompt import PromptTemplate, RetrievedPassage, assemble_prompt
from retrieval import Retriever

logger = logging.getLogger(__name__)


class RequestPipeline:
    """
    Handles one chat message end-to-end.

    Steps for each message:
      1. Record the user turn in the shared conversation window
      2. Retrieve relevant passages (an empty set if retrieval fails)
      3. Assemble the prompt from a snapshot of the window
      4. Ask the responder for a reply
      5. Record the assistant turn, only if a reply was produced
      6. Evict the oldest pairs if the window is over capacity

    The user turn is never rolled back, so history reflects what was asked
    even when answering failed. Collaborator failures are logged and turned
    into a degraded prompt or an error reply; they are never raised to the
    caller.

    Args:
        context: Conversation window shared by every request.
        retriever: Source of relevant passages.
        responder: Language model client.
        template: Prompt layout.
        retrieval_count: Number of passages requested per message.
        error_message: Reply returned when generation fails.
    """

    def __init__(
        self,
        context: ConversationContext,
        retriever: Retriever,
        responder: Responder,
        template: PromptTemplate,
        retrieval_count: int = 3,
        error_message: str = "Sorry, I couldn't generate a response right now.",
    ):
        if not error_message:
            raise ValueError("error_message must not be empty")
        self.context = context
        self.retriever = retriever
        self.responder = responder
        self.template = template
        self.retrieval_count = retrieval_count
        self.error_message = error_message

    async def _retrieve(self, text: str) -> List[RetrievedPassage]:
        try:
            return await self.retriever.search(text, self.retrieval_count)
        except RetrievalError as e:
            logger.warning(f"⚠️  Retrieval failed, continuing without passages: {e}")
        except Exception as e:  # noqa: BLE001
            logger.warning(
                f"⚠️  Unexpected retrieval error, continuing without passages: {e!r}"
            )
        return []

    async def handle_message(self, text: str) -> str:
        """
        Answer a user message using retrieved passages and recent history.

        Args:
            text: The raw user message.

        Returns:
            The model's reply, or the configured error message if generation failed.
        """
        self.context.append_user(text)

        passages = await self._retrieve(text)
        prompt = assemble_prompt(self.context.snapshot(), passages, text, self.template)

        try:
            response = await self.responder.generate(prompt)
        except GenerationError as e:
            logger.error(f"❌ Error generating response: {e}")
            response = None
        except Exception as e:  # noqa: BLE001
            logger.error(f"❌ Unexpected error generating response: {e!r}")
            response = None

        if response is not None:
            self.context.append_assistant(response)
        self.context.evict_if_over_capacity()

        return self.error_message if response is None else response
