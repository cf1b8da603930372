from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from router import invalid_request_handler, router

from config import AppConfig
from context import ConversationContext
from llm import LLMResponder
from pipeline import RequestPipeline
from retrieval import QdrantRetriever
from utils import load_tokenizer

config = AppConfig.load()
load_tokenizer(config.model)

app = FastAPI()
app.state.config = config
app.state.pipeline = RequestPipeline(
    context=ConversationContext(config.max_context_length),
    retriever=QdrantRetriever(config),
    responder=LLMResponder(config),
    template=config.prompt_template,
    retrieval_count=config.retrieval_count,
    error_message=config.generation_error_message,
)

app.include_router(router)
app.add_exception_handler(RequestValidationError, invalid_request_handler)
