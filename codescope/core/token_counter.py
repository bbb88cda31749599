# codescope/core/token_counter.py
from functools import lru_cache
from typing import Optional, Any

import tiktoken
from loguru import logger

DEFAULT_ENCODING = "cl100k_base" # Common for GPT-3.5/4
FALLBACK_ENCODING = "gpt2"

@lru_cache(maxsize=4) # Cache a few loaded encoder objects
def _get_cached_encoder(encoding_name: str) -> Optional[Any]:
    """Loads and caches an encoder. Loading may need network access the first time."""
    try:
        logger.debug(f"Attempting to load tiktoken encoder: {encoding_name}")
        encoder = tiktoken.get_encoding(encoding_name)
        logger.debug(f"Successfully loaded encoder '{encoding_name}'.")
        return encoder
    except Exception as e:
        logger.warning(f"Failed to get tiktoken encoder '{encoding_name}': {e}. Trying fallback '{FALLBACK_ENCODING}'.")
        if encoding_name == FALLBACK_ENCODING:
             logger.error(f"Fallback encoder '{FALLBACK_ENCODING}' also failed. No encoder available.")
             return None
        return _get_cached_encoder(FALLBACK_ENCODING)

def estimate_tokens(text: str) -> int:
    """Character-based estimate used when no encoder can be loaded."""
    return len(text) // 4

def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """
    Counts tokens in a string using the specified tiktoken encoding.
    Falls back to character estimation if the encoder cannot be loaded.
    """
    if not text:
        return 0

    encoder = _get_cached_encoder(encoding_name)
    if encoder is None:
        return estimate_tokens(text)
    try:
        return len(encoder.encode(text))
    except Exception as e:
        logger.error(f"Error encoding text for token count with '{encoding_name}': {e}")
        return estimate_tokens(text)
