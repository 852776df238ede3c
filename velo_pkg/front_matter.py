"""
YAML front matter: detection, splitting, synthesis of a default block and
decoding into Post objects.
"""

import os
import logging
from dataclasses import dataclass, field
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .categories import categories_from_path, merge_categories
from .errors import PerFileParseError
from .file_store import FileStore
from .models import Post
from .paths import slugify
from .settings import BlogSettings

DELIMITER = '---'
DATE_FORMATS = ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M', '%Y-%m-%d', '%Y/%m/%d', '%b %d, %Y']

_TRUE_VALUES = {'true', 'yes', 'on', '1'}
_FALSE_VALUES = {'false', 'no', 'off', '0'}


def split_front_matter(text: str) -> Tuple[Optional[str], str]:
    """Split text into (yaml_text, body).

    Front matter is present when, after leading whitespace, the first line
    is ``---`` and a later line is ``---``. yaml_text is None otherwise and
    the body is the whole text. The body has leading whitespace removed.
    """
    stripped = text.lstrip('\ufeff \t\r\n')
    lines = stripped.splitlines(keepends=True)
    if lines and lines[0].strip() == DELIMITER:
        for index in range(1, len(lines)):
            if lines[index].strip() == DELIMITER:
                return ''.join(lines[1:index]), ''.join(lines[index + 1:]).lstrip()
    return None, stripped


def has_front_matter(text: str) -> bool:
    return split_front_matter(text)[0] is not None


def build_default_front_matter(title: str, categories: List[str], now: Optional[datetime] = None) -> str:
    """Render a front matter block for a file that has none."""
    now = now or datetime.now()
    data = {
        'title': title,
        'date': now.strftime('%Y-%m-%d %H:%M:%S'),
        'author': '',
        'tags': [],
        'categories': list(categories),
        'slug': slugify(title, now=now),
        'draft': False,
    }
    dumped = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=None)
    return f"{DELIMITER}\n{dumped}{DELIMITER}\n\n"


def parse_bool(value: Any) -> Optional[bool]:
    """Parse a boolean flag; None when the value is missing or not recognisable."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return None


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a date from YAML. Aware datetimes are converted to naive local time."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        parsed = None
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
            except ValueError:
                return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _coerce_list(value: Any, separator: str = ',') -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = str(value).split(separator)
    result = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text and text not in result:
            result.append(text)
    return result


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_key(key: Any) -> str:
    return str(key).strip().lower().replace('-', '').replace('_', '')


@dataclass
class FrontMatter:
    """Decoded front matter fields. Absent fields are None or empty."""
    title: Optional[str] = None
    date: Optional[datetime] = None
    author: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    slug: Optional[str] = None
    draft: Optional[bool] = None
    raw_date: Any = None

    @classmethod
    def from_mapping(cls, data: Dict[Any, Any]) -> 'FrontMatter':
        values = {normalize_key(key): value for key, value in data.items()}

        if values.get('categories') is not None:
            categories = _coerce_list(values['categories'])
        else:
            categories = _coerce_list(values.get('category'), separator='/')

        raw_date = values.get('date', values.get('publisheddate'))
        return cls(
            title=_coerce_text(values.get('title')),
            date=parse_date(raw_date),
            author=_coerce_text(values.get('author')),
            tags=_coerce_list(values.get('tags', values.get('tag'))),
            categories=categories,
            slug=_coerce_text(values.get('slug')),
            draft=parse_bool(values.get('draft')),
            raw_date=raw_date,
        )


def is_draft_path(relative_path: str) -> bool:
    """A file is a draft by location if its name starts with 'draft-' or it sits under a 'drafts' folder."""
    segments = relative_path.replace('\\', '/').split('/')
    if segments[-1].lower().startswith('draft-'):
        return True
    return any(segment.lower() == 'drafts' for segment in segments[:-1])


class FrontMatterParser:
    """Turn one Markdown source file into a Post."""

    def __init__(self, settings: BlogSettings, file_store: Optional[FileStore] = None):
        self.settings = settings
        self.file_store = file_store or FileStore()
        self.logger = logging.getLogger('Velo.FrontMatterParser')

    def parse_file(self, file_path: str) -> Optional[Post]:
        """
        Parse a Markdown file.

        Returns:
            The Post, or None if the file is a draft

        Raises:
            PerFileParseError: If the file cannot be read or its front matter is invalid
        """
        try:
            text = self.file_store.read_text(file_path)
        except (IOError, OSError, PermissionError, UnicodeDecodeError) as e:
            raise PerFileParseError(file_path, e) from e

        root = self.settings.content_path
        relative = os.path.relpath(file_path, root).replace('\\', '/')
        stem = os.path.splitext(os.path.basename(file_path))[0]
        directory_categories = categories_from_path(file_path, root, self.settings.excluded_directories)

        yaml_text, body = split_front_matter(text)
        if yaml_text is None and self.settings.auto_add_front_matter:
            header = build_default_front_matter(stem, directory_categories)
            text = header + text.lstrip('\ufeff')
            yaml_text, body = split_front_matter(text)
            self.logger.debug(f"Added default front matter to {file_path}")
            if self.settings.auto_save_modified:
                self.file_store.write_text(file_path, text)
                self.logger.info(f"Saved default front matter to {file_path}")

        front_matter = FrontMatter()
        if yaml_text is not None:
            try:
                data = yaml.safe_load(yaml_text)
            except yaml.YAMLError as e:
                raise PerFileParseError(file_path, f"invalid YAML front matter: {e}") from e
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise PerFileParseError(file_path, "front matter is not a mapping")
            front_matter = FrontMatter.from_mapping(data)

        draft = front_matter.draft if front_matter.draft is not None else is_draft_path(relative)
        if draft:
            self.logger.debug(f"Skipping draft {file_path}")
            return None

        if front_matter.raw_date is not None and front_matter.date is None:
            self.logger.warning(f"Invalid date '{front_matter.raw_date}' in {file_path}, using file time")
        published = front_matter.date or self.file_store.last_modified_time(file_path)

        return Post(
            title=front_matter.title or stem,
            slug=front_matter.slug or '',
            source_path=file_path,
            relative_source=relative,
            raw_body=body,
            published_date=published,
            author=front_matter.author,
            tags=front_matter.tags,
            categories=merge_categories(directory_categories, front_matter.categories,
                                        self.settings.merge_directory_categories),
        )
