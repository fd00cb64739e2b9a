"""
Slug & Metadata Deriver
=======================

Pure functions - no ORM, no settings. The post service decides WHEN to
call them (slug only when the title is being written, read time only when
the content is); this module only decides WHAT they return.

Slug collisions are the post service's problem, not ours.
"""

import math
import re
from typing import Tuple

from .models import WORDS_PER_MINUTE, EXCERPT_LENGTH, EXCERPT_SUFFIX

_NON_ALNUM_RUN = re.compile(r'[^a-z0-9]+')


def derive_slug(title: str) -> str:
    """
    "Hello, World! 2024" -> "hello-world-2024"

    Every maximal run outside [a-z0-9] becomes a single hyphen, then
    leading/trailing hyphens are stripped.
    """
    return _NON_ALNUM_RUN.sub('-', title.lower()).strip('-')


def estimate_read_time(content: str) -> int:
    """Minutes to read at 200 words/minute, rounded up. Empty content is 0."""
    word_count = len(content.split())
    return math.ceil(word_count / WORDS_PER_MINUTE)


def derive_metadata(title: str, content: str) -> Tuple[str, int]:
    return derive_slug(title), estimate_read_time(content)


def make_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    return content[:length] + EXCERPT_SUFFIX
