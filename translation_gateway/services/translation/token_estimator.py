"""Rough token estimation used as a cost proxy for rate limiting."""

import math
import re

# CJK Unified Ideographs
DENSE_CHAR_PATTERN = re.compile(r"[\u4e00-\u9fff]")

DENSE_CHAR_COST = 1.5  # ~1-2 CJK characters per token
OTHER_CHAR_COST = 0.25  # ~4 characters per token


def count_dense_chars(text: str) -> int:
    return len(DENSE_CHAR_PATTERN.findall(text or ""))


def estimate_tokens(text: str) -> int:
    """Estimate the token cost of a text.

    Does not try to match any real tokenizer; it only has to be
    deterministic and grow with the text length.

    Args:
        text: Text to estimate.

    Returns:
        Non-negative token estimate.
    """
    if not text:
        return 0
    dense = count_dense_chars(text)
    other = len(text) - dense
    return math.ceil(dense * DENSE_CHAR_COST + other * OTHER_CHAR_COST)
