import asyncio

from context import ConversationContext, Exchange, Role
from errors import GenerationError, RetrievalError
from pipeline import RequestPipeline
from prompt import PromptTemplate, RetrievedPassage

ERROR_REPLY = "model unavailable"


class StubRetriever:
    def __init__(
        self,
        passages: list[RetrievedPassage] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._passages = passages or []
        self._error = error
        self.calls: list[tuple[str, int]] = []

    async def search(self, query: str, k: int) -> list[RetrievedPassage]:
        self.calls.append((query, k))
        if self._error is not None:
            raise self._error
        return self._passages


class StubResponder:
    def __init__(self, reply: str = "answer", error: Exception | None = None) -> None:
        self._reply = reply
        self._error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return self._reply


class GatedResponder:
    """Blocks every generation until the gate opens."""

    def __init__(self, gate: asyncio.Event) -> None:
        self._gate = gate
        self.waiting = 0

    async def generate(self, prompt: str) -> str:
        self.waiting += 1
        await self._gate.wait()
        return "reply to " + prompt.rsplit("User Query: ", 1)[1].split("\n")[0]


def _pipeline(context, retriever, responder) -> RequestPipeline:
    return RequestPipeline(
        context=context,
        retriever=retriever,
        responder=responder,
        template=PromptTemplate(),
        retrieval_count=3,
        error_message=ERROR_REPLY,
    )


def test_successful_message_updates_context_and_returns_reply() -> None:
    context = ConversationContext()
    retriever = StubRetriever([RetrievedPassage("Paris is the capital of France.")])
    responder = StubResponder("Paris.")
    pipeline = _pipeline(context, retriever, responder)

    reply = asyncio.run(pipeline.handle_message("Capital of France?"))

    assert reply == "Paris."
    assert retriever.calls == [("Capital of France?", 3)]
    assert context.snapshot() == (
        Exchange(Role.USER, "Capital of France?"),
        Exchange(Role.ASSISTANT, "Paris."),
    )
    prompt = responder.prompts[0]
    assert "Previous conversation:\nUser: Capital of France?\n" in prompt
    assert "Relevant information:\nParis is the capital of France.\n" in prompt
    assert prompt.endswith("User Query: Capital of France?\nAssistant Response:")


def test_previous_exchange_is_replayed_into_next_prompt() -> None:
    context = ConversationContext()
    responder = StubResponder("answer")
    pipeline = _pipeline(context, StubRetriever(), responder)

    asyncio.run(pipeline.handle_message("first"))
    asyncio.run(pipeline.handle_message("second"))

    assert (
        "Previous conversation:\nUser: first\nAssistant: answer\nUser: second\n"
        in responder.prompts[1]
    )


def test_retrieval_failure_degrades_to_no_passages() -> None:
    context = ConversationContext()
    responder = StubResponder("still answered")
    retriever = StubRetriever(error=RetrievalError("qdrant down"))

    reply = asyncio.run(_pipeline(context, retriever, responder).handle_message("q"))

    assert reply == "still answered"
    assert len(responder.prompts) == 1
    assert "Relevant information:" not in responder.prompts[0]
    assert len(context) == 2


def test_unexpected_retrieval_exception_is_contained() -> None:
    responder = StubResponder()
    retriever = StubRetriever(error=RuntimeError("embedding model crashed"))
    pipeline = _pipeline(ConversationContext(), retriever, responder)

    reply = asyncio.run(pipeline.handle_message("q"))

    assert reply == "answer"
    assert "Relevant information:" not in responder.prompts[0]


def test_generation_failure_returns_error_and_keeps_only_user_turn() -> None:
    context = ConversationContext()
    responder = StubResponder(error=GenerationError("timeout"))
    pipeline = _pipeline(context, StubRetriever(), responder)

    reply = asyncio.run(pipeline.handle_message("q"))

    assert reply == ERROR_REPLY
    assert context.snapshot() == (Exchange(Role.USER, "q"),)


def test_unexpected_generation_exception_is_contained() -> None:
    context = ConversationContext()
    responder = StubResponder(error=KeyError("choices"))
    pipeline = _pipeline(context, StubRetriever(), responder)

    reply = asyncio.run(pipeline.handle_message("q"))

    assert reply == ERROR_REPLY
    assert len(context) == 1


def test_history_is_bounded_across_messages() -> None:
    context = ConversationContext(max_context_length=2)
    pipeline = _pipeline(context, StubRetriever(), StubResponder())

    for i in range(5):
        asyncio.run(pipeline.handle_message(f"m{i}"))

    window = context.snapshot()
    assert [e.text for e in window] == ["m3", "answer", "m4", "answer"]
    assert window[0].role is Role.USER


def test_repeated_generation_failures_do_not_grow_window_unbounded() -> None:
    context = ConversationContext(max_context_length=2)
    responder = StubResponder(error=GenerationError("down"))
    pipeline = _pipeline(context, StubRetriever(), responder)

    for i in range(10):
        asyncio.run(pipeline.handle_message(f"m{i}"))

    assert len(context) <= 4


def test_context_lock_is_not_held_while_awaiting_model() -> None:
    context = ConversationContext()

    async def scenario() -> list[str]:
        gate = asyncio.Event()
        responder = GatedResponder(gate)
        pipeline = _pipeline(context, StubRetriever(), responder)

        first = asyncio.create_task(pipeline.handle_message("one"))
        second = asyncio.create_task(pipeline.handle_message("two"))
        while responder.waiting < 2:
            await asyncio.sleep(0)

        # both user turns land while both requests are still waiting on the model
        assert [e.text for e in context.snapshot()] == ["one", "two"]
        assert len(context) == 2

        gate.set()
        return await asyncio.gather(first, second)

    replies = asyncio.run(scenario())

    assert replies == ["reply to one", "reply to two"]
    window = context.snapshot()
    assert len(window) == 4
    assistant_texts = sorted(e.text for e in window if e.role is Role.ASSISTANT)
    assert assistant_texts == ["reply to one", "reply to two"]
