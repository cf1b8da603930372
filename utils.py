from functools import lru_cache

import tiktoken
from transformers import AutoTokenizer

from config import ModelConfig, ModelType

# Tokenizer for local Mistral-based models
_HF_TOKENIZER = "mistralai/Mistral-7B-Instruct-v0.3"

# Encoding used by OpenAI models (e.g., GPT-3.5/4/4o)
_OPENAI_ENCODING = "cl100k_base"


@lru_cache(maxsize=None)
def _hf_tokenizer():
    return AutoTokenizer.from_pretrained(_HF_TOKENIZER)


@lru_cache(maxsize=None)
def _openai_encoding():
    return tiktoken.get_encoding(_OPENAI_ENCODING)


def count_tokens(model: ModelConfig, text: str) -> int:
    """
    Estimate the number of tokens in a prompt or response.

    Args:
        model: The model configuration, used to select the appropriate tokenizer.
        text: The text to measure.

    Returns:
        An integer token count.

    Notes:
        - For OpenAI models, uses the cl100k_base tokenizer (used by GPT-3.5, GPT-4, GPT-4o).
        - For all other models (e.g. Mistral), uses HuggingFace's AutoTokenizer.
        - Tokenizers are cached; `load_tokenizer` warms the cache at startup.
    """
    if model.model_type == ModelType.OPENAI:
        return len(_openai_encoding().encode(text))
    return len(_hf_tokenizer().encode(text))


def load_tokenizer(model: ModelConfig) -> None:
    """Load the tokenizer for ``model`` at startup rather than on the first request."""
    if model.model_type == ModelType.OPENAI:
        _openai_encoding()
    else:
        _hf_tokenizer()
