"""
Path and name helpers: file-name sanitising, stable short hashes and slugs.
"""

import os
import re
import hashlib
import unicodedata
from datetime import datetime
from functools import lru_cache
from typing import Dict, Optional

import yaml

TRANSLITERATION_FILE = os.path.join(os.path.dirname(__file__), 'data', 'transliteration.yml')

# Characters replaced by '-' in file and folder names. Covers the characters
# that break paths on common file systems plus general punctuation.
ILLEGAL_CHARACTERS = ' 　/\\:*?"<>|.,;!@#$%^&()+=[]{}~`'

_SANITIZE_TABLE = str.maketrans({char: '-' for char in ILLEGAL_CHARACTERS})

EMPTY_HASH = '00000000'
MIN_SLUG_LENGTH = 3
FALLBACK_SLUG_RE = re.compile(r'^post-\d{8}-[0-9a-f]{4}$')


def sanitize(name: str) -> str:
    """Replace every character in ILLEGAL_CHARACTERS with '-'."""
    return name.translate(_SANITIZE_TABLE)


def generate_hash_code(value: str) -> str:
    """Return an 8 hex character code derived from the content of value.

    The code only depends on the string itself, so it is identical across
    runs and machines.
    """
    if not value:
        return EMPTY_HASH
    return hashlib.md5(value.encode('utf-8')).hexdigest()[:8]


@lru_cache(maxsize=1)
def load_transliteration_table() -> Dict[str, str]:
    """Load the phrase table once. The returned dict must not be modified."""
    with open(TRANSLITERATION_FILE, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return {str(key): str(value) for key, value in data.items()}


@lru_cache(maxsize=1)
def _transliteration_pattern():
    table = load_transliteration_table()
    # Alternation is tried left to right, so longer keys must come first
    keys = sorted(table, key=len, reverse=True)
    return re.compile('|'.join(re.escape(key) for key in keys))


def transliterate(text: str) -> str:
    """Replace known phrases with their ASCII tokens, longest match first."""
    if not text:
        return ''
    table = load_transliteration_table()
    if not table:
        return text
    return _transliteration_pattern().sub(lambda m: f" {table[m.group(0)]} ", text)


def fold_to_ascii(text: str) -> str:
    """Drop accents and fold compatibility forms (full-width letters etc.) to ASCII."""
    return unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')


def slugify(title: str, now: Optional[datetime] = None) -> str:
    """Build a URL-safe slug from a title.

    Titles that reduce to fewer than three characters get a dated fallback
    of the form ``post-YYYYMMDD-xxxx``. The suffix is derived from the title
    and the date, so the same title on the same day always gives the same
    slug.
    """
    slug = fold_to_ascii(transliterate(title or '')).lower()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug.strip())
    slug = re.sub(r'-+', '-', slug).strip('-')

    if len(slug) < MIN_SLUG_LENGTH:
        date_prefix = (now or datetime.now()).strftime('%Y%m%d')
        suffix = generate_hash_code(f"{title or ''}|{date_prefix}")[:4]
        slug = f"post-{date_prefix}-{suffix}"

    return slug


def is_fallback_slug(slug: str) -> bool:
    """True for the dated ``post-YYYYMMDD-xxxx`` slugs produced by slugify."""
    return bool(FALLBACK_SLUG_RE.match(slug or ''))
