import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from dotenv import load_dotenv

from prompt import (
    DEFAULT_CONTEXT_FORMAT,
    DEFAULT_RELEVANT_INFO_FORMAT,
    DEFAULT_SYSTEM_MESSAGE,
    DEFAULT_USER_QUERY_FORMAT,
    PromptTemplate,
)

DEFAULT_GENERATION_ERROR_MESSAGE = "Sorry, I couldn't generate a response right now."


class ModelType(str, Enum):
    """
    Enumeration of supported model backends.

    Attributes:
        VLLM: A local or hosted model exposing an OpenAI-compatible
            ``/v1/chat/completions`` endpoint (vLLM, Ollama, ...).
        OPENAI: An OpenAI model (e.g., gpt-4o, gpt-4o-mini).
    """

    VLLM = "vllm"
    OPENAI = "openai"


@dataclass
class ModelConfig:
    """
    Configuration for the LLM that answers chat messages.

    Attributes:
        name: Model identifier sent with each completion request.
        url: Base URL for querying the model (if self-hosted).
        model_type: Type of model (e.g., VLLM, OPENAI).
    """

    name: str
    url: str
    model_type: ModelType


@dataclass
class AppConfig:
    """
    Application configuration loaded from environment variables.

    Attributes:
        qdrant_url: URL to the Qdrant instance.
        qdrant_collection: Name of the Qdrant collection to search.
        model: The model used to answer chat messages.
        log_level: Logging level (e.g., logging.INFO).
        openai_api_key: API key for OpenAI access (if applicable).
        embedding_model: SentenceTransformer model name used to embed queries/documents.
        max_context_length: Number of user/assistant pairs kept in the conversation window.
        retrieval_count: Number of passages retrieved per message.
        max_response_tokens: Token budget for LLM-generated answers.
        prompt_template: Layout of the prompt sent to the model.
        generation_error_message: Reply returned when the model fails.
    """

    qdrant_url: str
    qdrant_collection: str
    model: ModelConfig
    log_level: int
    openai_api_key: Optional[str]
    embedding_model: str
    max_context_length: int
    retrieval_count: int
    max_response_tokens: int
    prompt_template: PromptTemplate
    generation_error_message: str

    @staticmethod
    def _get_required_env_var(key: str) -> str:
        """
        Retrieve a required environment variable or raise an error.

        Args:
            key: Environment variable name.

        Returns:
            The value of the environment variable.

        Raises:
            ValueError: If the variable is missing or empty.
        """
        value = os.getenv(key)
        if not value:
            raise ValueError(f"{key} environment variable is required.")
        return value

    @staticmethod
    def _get_positive_int(key: str, default: int) -> int:
        """
        Read an optional positive integer environment variable.

        Raises:
            ValueError: If the value is not an integer or is less than 1.
        """
        raw = os.getenv(key)
        if not raw:
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{key} must be an integer, got '{raw}'")
        if value < 1:
            raise ValueError(f"{key} must be at least 1, got {value}")
        return value

    @staticmethod
    def _parse_log_level(log_level_name: str) -> int:
        """
        Convert log level string to logging constant.

        Args:
            log_level_name: Log level name (e.g., "debug", "info").

        Returns:
            Corresponding `logging` module level.

        Raises:
            ValueError: If the log level name is invalid.
        """
        log_levels = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        if log_level_name not in log_levels:
            raise ValueError(
                f"Invalid LOG_LEVEL: '{log_level_name}'. Must be one of: {', '.join(log_levels.keys())}"
            )
        return log_levels[log_level_name]

    @staticmethod
    def _parse_model_type(raw: str) -> ModelType:
        try:
            return ModelType(raw.lower())
        except ValueError:
            raise ValueError(
                f"Invalid MODEL_TYPE: '{raw}'. Must be one of: {', '.join(t.value for t in ModelType)}"
            )

    @staticmethod
    def _load_prompt_template() -> PromptTemplate:
        """
        Build the prompt template from optional overrides.

        Format values may use ``\\n`` escapes, which are expanded so that
        multi-line formats can be written on a single ``.env`` line.

        Raises:
            TemplateError: If any format string lacks its single ``{}`` insertion point.
        """

        def read(key: str, default: str) -> str:
            value = os.getenv(key)
            if value is None:
                return default
            return value.replace("\\n", "\n")

        return PromptTemplate(
            system_message=read("SYSTEM_MESSAGE", DEFAULT_SYSTEM_MESSAGE),
            context_format=read("CONTEXT_FORMAT", DEFAULT_CONTEXT_FORMAT),
            relevant_info_format=read(
                "RELEVANT_INFO_FORMAT", DEFAULT_RELEVANT_INFO_FORMAT
            ),
            user_query_format=read("USER_QUERY_FORMAT", DEFAULT_USER_QUERY_FORMAT),
        )

    @staticmethod
    def load() -> "AppConfig":
        """
        Load application configuration from environment variables.

        Expected environment variables:
            - QDRANT_URL
            - QDRANT_COLLECTION
            - MODEL_NAME
            - MODEL_URL
            - MODEL_TYPE ("vllm" or "openai")
            - EMBEDDING_MODEL
            - OPENAI_API_KEY (only when MODEL_TYPE is "openai")
            - LOG_LEVEL (optional, default "info")
            - MAX_CONTEXT_LENGTH (optional, default 5)
            - RETRIEVAL_COUNT (optional, default 3)
            - MAX_RESPONSE_TOKENS (optional, default 512)
            - SYSTEM_MESSAGE, CONTEXT_FORMAT, RELEVANT_INFO_FORMAT,
              USER_QUERY_FORMAT (optional prompt overrides)
            - GENERATION_ERROR_MESSAGE (optional)

        Returns:
            Fully initialized `AppConfig` object.

        Raises:
            ValueError: If required environment variables are missing or invalid.
        """
        load_dotenv()
        get = AppConfig._get_required_env_var

        log_level = AppConfig._parse_log_level(os.getenv("LOG_LEVEL", "info").lower())
        logging.basicConfig(level=log_level)
        logger = logging.getLogger(__name__)
        logger.debug("Logging initialized.")

        qdrant_url = get("QDRANT_URL")
        qdrant_collection = get("QDRANT_COLLECTION")

        model = ModelConfig(
            name=get("MODEL_NAME"),
            url=get("MODEL_URL"),
            model_type=AppConfig._parse_model_type(get("MODEL_TYPE")),
        )

        openai_api_key = os.getenv("OPENAI_API_KEY") or None
        if model.model_type == ModelType.OPENAI and not openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when MODEL_TYPE is 'openai'.")

        return AppConfig(
            qdrant_url=qdrant_url,
            qdrant_collection=qdrant_collection,
            model=model,
            log_level=log_level,
            openai_api_key=openai_api_key,
            embedding_model=get("EMBEDDING_MODEL"),
            max_context_length=AppConfig._get_positive_int("MAX_CONTEXT_LENGTH", 5),
            retrieval_count=AppConfig._get_positive_int("RETRIEVAL_COUNT", 3),
            max_response_tokens=AppConfig._get_positive_int("MAX_RESPONSE_TOKENS", 512),
            prompt_template=AppConfig._load_prompt_template(),
            generation_error_message=os.getenv(
                "GENERATION_ERROR_MESSAGE", DEFAULT_GENERATION_ERROR_MESSAGE
            ),
        )
