"""Conversions between payload elements, header words and allocation units."""
from __future__ import annotations

from .protocol import ALLOCATION_UNIT


def elements_per_word(word_bytes: int, element_bytes: int) -> int:
    """How many payload elements fit in one header-native word."""
    if element_bytes <= 0 or word_bytes % element_bytes:
        raise ValueError(f"word of {word_bytes} bytes does not hold whole {element_bytes}-byte elements")
    return word_bytes // element_bytes


def elements_to_words(n_elements: int, per_word: int) -> int:
    """Words needed to hold n_elements, rounding up on remainder. Zero stays zero."""
    if n_elements < 0:
        raise ValueError(f"negative element count {n_elements}")
    words, rem = divmod(n_elements, per_word)
    return words + 1 if rem else words


def words_to_elements(n_words: int, per_word: int) -> int:
    if n_words < 0:
        raise ValueError(f"negative word count {n_words}")
    return n_words * per_word


def round_up(n_bytes: int, unit: int = ALLOCATION_UNIT) -> int:
    """Round a byte count up to the backing buffer's allocation unit."""
    return elements_to_words(n_bytes, unit) * unit
