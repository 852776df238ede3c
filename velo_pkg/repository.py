"""
Post repository: scans the content directory once, caches the posts and
answers queries from the cache. Safe to use from several threads.
"""

import os
import logging
import threading
from typing import List, Optional

from .categories import build_category_tree
from .errors import ConfigurationError, ContentDirectoryMissing, VeloError
from .file_store import FileStore
from .front_matter import FrontMatterParser
from .models import CategoryNode, Post
from .settings import BlogSettings


class PostRepository:
    def __init__(self, settings: BlogSettings, file_store: Optional[FileStore] = None,
                 parser: Optional[FrontMatterParser] = None):
        self.settings = settings
        self.file_store = file_store or FileStore()
        self.parser = parser or FrontMatterParser(settings, self.file_store)
        self.logger = logging.getLogger('Velo.PostRepository')

        self._posts: List[Post] = []
        self._loaded = False
        self._load_lock = threading.Lock()
        self._posts_lock = threading.RLock()
        self.skipped_files: List[str] = []

    def _ensure_loaded(self):
        if self._loaded:
            return
        with self._load_lock:
            if not self._loaded:
                self._load_posts()
                self._loaded = True

    def force_reload(self) -> int:
        """Scan the content directory again. Returns the post count.

        The cached posts are only replaced when the scan succeeds; after a
        failed scan the next read tries again.
        """
        with self._load_lock:
            self._loaded = False
            self._load_posts()
            self._loaded = True
        with self._posts_lock:
            return len(self._posts)

    def _load_posts(self):
        content_path = self.settings.content_path
        if not content_path:
            raise ConfigurationError("Content directory is not configured")
        if not os.path.isdir(content_path):
            raise ContentDirectoryMissing(content_path)

        files = self.file_store.list_files(content_path, '*.md', recursive=True)
        self.logger.debug(f"Found {len(files)} markdown files in {content_path}")

        posts = []
        skipped = []
        drafts = 0
        for file_path in files:
            try:
                post = self.parser.parse_file(file_path)
            except (VeloError, IOError, OSError) as e:
                self.logger.error(f"Skipping {file_path}: {e}")
                skipped.append(file_path)
                continue
            if post is None:
                drafts += 1
                continue
            posts.append(post)

        posts.sort(key=lambda p: p.published_date, reverse=True)
        with self._posts_lock:
            self._posts = posts
            self.skipped_files = skipped
        self.logger.info(f"Loaded {len(posts)} posts ({drafts} drafts, {len(skipped)} skipped)")

    def get_all_posts(self) -> List[Post]:
        """All non-draft posts, newest first."""
        self._ensure_loaded()
        with self._posts_lock:
            return list(self._posts)

    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        if not slug:
            return None
        self._ensure_loaded()
        with self._posts_lock:
            for post in self._posts:
                if post.slug == slug:
                    return post
        return None

    def search_posts(self, query: str) -> List[Post]:
        """Case-insensitive search over title, body, tags and categories."""
        self._ensure_loaded()
        if not query or not query.strip():
            return self.get_all_posts()

        needle = query.strip().lower()
        with self._posts_lock:
            return [
                post for post in self._posts
                if needle in post.title.lower()
                or needle in post.raw_body.lower()
                or any(needle in tag.lower() for tag in post.tags)
                or any(needle in category.lower() for category in post.categories)
            ]

    def get_category_tree(self) -> CategoryNode:
        """Build a fresh category tree from the current posts."""
        return build_category_tree(self.get_all_posts())
