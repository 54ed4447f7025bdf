"""Text normalization used by the answer matcher.

All functions are pure and total: any string, including the empty string,
produces a result.
"""
import re
from typing import List

# Straight and curly quotes, periods, commas, parentheses and hyphens
_PUNCTUATION = re.compile(r"['\"‘’“”.,()\-]")
_ARTICLES = re.compile(r"\b(the|a|an)\b")
_WHITESPACE = re.compile(r"\s+")

# Connectives ignored when comparing multi-item answers
STOP_WORDS = frozenset({"and", "or", "of", "in", "with"})


def normalize(s: str) -> str:
    """Lowercase, strip punctuation and stand-alone articles, collapse whitespace."""
    normalized = s.lower()
    normalized = _PUNCTUATION.sub("", normalized)
    normalized = _ARTICLES.sub("", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.strip()


def stem(word: str) -> str:
    """Strip one trailing "s" from words of five or more characters.

    Short words such as "rays", "was" or "this" are left alone.
    """
    if len(word) >= 5 and word.endswith("s"):
        return word[:-1]
    return word


def tokenize(s: str) -> List[str]:
    """Normalized, stemmed content words of ``s``."""
    return [
        stem(word)
        for word in normalize(s).split(" ")
        if len(word) > 1 and word not in STOP_WORDS
    ]
