import re
from functools import lru_cache
from typing import List, Optional

import tiktoken
from langchain_text_splitters import RecursiveCharacterTextSplitter

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


@lru_cache(maxsize=4)
def get_encoding(encoding_name: Optional[str] = None):
    """Get tiktoken encoding for token counting; loaded once per name."""
    try:
        if encoding_name:
            return tiktoken.get_encoding(encoding_name)
        try:
            return tiktoken.encoding_for_model("gpt-4o")
        except Exception:
            return tiktoken.get_encoding("cl100k_base")
    except Exception as e:
        raise RuntimeError("tiktoken initialization failed") from e


def token_count(text: str, encoding=None) -> int:
    """Count tokens in text using tiktoken."""
    if not text:
        return 0
    enc = encoding or get_encoding()
    return len(enc.encode(text))


def trim_to_token_budget(text: str, max_tokens: int, encoding=None) -> str:
    """Cut text so it encodes to at most max_tokens tokens."""
    if not text:
        return ""
    # a token never spans less than one character
    if len(text) <= max_tokens:
        return text
    enc = encoding or get_encoding()
    tokens = enc.encode(text)
    if len(tokens) <= max_tokens:
        return text
    return enc.decode(tokens[:max_tokens])


def split_sentences(text: str) -> List[str]:
    """Regex sentence split on terminal punctuation followed by whitespace."""
    return [part.strip() for part in SENTENCE_BOUNDARY.split(text) if part.strip()]


def default_chunker(
    text: str,
    chunk_size: int = 1400,
    chunk_overlap: int = 120
) -> List[str]:
    """
    Split text into overlapping windows with LangChain's RecursiveCharacterTextSplitter.
    Used to feed long scraped pages to a single summarization call.
    """
    if not text or not text.strip():
        return []
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=len,
        separators=["\n\n", "\n", ". ", " ", ""],
    )
    return splitter.split_text(text)
