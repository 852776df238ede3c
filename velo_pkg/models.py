"""Data models for posts and the category tree."""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .paths import generate_hash_code, is_fallback_slug, sanitize, slugify

_WINDOWS_DRIVE_RE = re.compile(r'^[A-Za-z]:[\\/]')


def is_filesystem_path(path: str) -> bool:
    """True for absolute local paths and file:// URLs, which must never reach the output."""
    return (
        path.lower().startswith('file:')
        or os.path.isabs(path)
        or bool(_WINDOWS_DRIVE_RE.match(path))
    )


@dataclass
class Post:
    """One parsed article.

    ``raw_body`` holds the Markdown as read from disk (front matter removed);
    ``rendered_html`` is filled in by the renderer with the final page.
    """
    title: str
    slug: str = ''
    source_path: Optional[str] = None
    relative_source: Optional[str] = None
    raw_body: str = ''
    rendered_html: str = ''
    published_date: datetime = field(default_factory=datetime.now)
    author: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    image_paths: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.title:
            self.title = 'Untitled'
        if self.tags is None:
            self.tags = []
        if self.categories is None:
            self.categories = []
        if self.image_paths is None:
            self.image_paths = []
        if not (self.slug or '').strip():
            self.slug = slugify(self.title)
        else:
            self.slug = self.slug.strip()

    @property
    def first_image_url(self) -> str:
        return self.image_paths[0] if self.image_paths else ''

    @property
    def output_file_name(self) -> str:
        """Flat output name, stable for unchanged input.

        The hash keeps same-named files from different folders apart. Dated
        fallback slugs are left out of the name so it does not change from
        one day to the next.
        """
        name = 'post' if is_fallback_slug(self.slug) else self.slug
        if self.relative_source:
            key = self.relative_source
        elif self.source_path:
            key = self.source_path.replace('\\', '/')
        else:
            key = f"{self.title}|{name}"
        return f"{generate_hash_code(key)}-{sanitize(name)}.html"

    def clear_images(self):
        self.image_paths = []

    def add_image_path(self, path: str) -> bool:
        """Record an image used by the post. Returns False for duplicates and local paths."""
        if not path or path in self.image_paths:
            return False
        if is_filesystem_path(path):
            return False
        self.image_paths.append(path)
        return True

    def to_summary(self) -> Dict[str, Any]:
        """Plain-data view used by the index page."""
        return {
            'title': self.title,
            'slug': self.slug,
            'url': self.output_file_name,
            'published_date': self.published_date.strftime('%Y-%m-%d'),
            'author': self.author or '',
            'categories': list(self.categories),
            'categories_plain': ' / '.join(self.categories),
            'tags': list(self.tags),
            'first_image_url': self.first_image_url,
            'image_count': len(self.image_paths),
        }


@dataclass
class CategoryNode:
    """A node in the category tree.

    ``post_count`` includes posts filed under every descendant.
    """
    name: str
    path_segment: str
    post_count: int = 0
    children: List['CategoryNode'] = field(default_factory=list)

    def find_child(self, name: str) -> Optional['CategoryNode']:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def find(self, path: str) -> Optional['CategoryNode']:
        """Look up a descendant by its slash-joined path."""
        node = self
        for name in [part for part in path.split('/') if part]:
            node = node.find_child(name)
            if node is None:
                return None
        return node
