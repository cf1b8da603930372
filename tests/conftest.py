import logging

import pytest

from config import AppConfig, ModelConfig, ModelType
from prompt import PromptTemplate


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        qdrant_url="http://qdrant.test:6333",
        qdrant_collection="rag",
        model=ModelConfig(
            name="llama3", url="http://llm.test", model_type=ModelType.VLLM
        ),
        log_level=logging.INFO,
        openai_api_key=None,
        embedding_model="intfloat/e5-small-v2",
        max_context_length=5,
        retrieval_count=3,
        max_response_tokens=256,
        prompt_template=PromptTemplate(),
        generation_error_message="Sorry, I couldn't generate a response right now.",
    )
