import os
import time
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Tuple

from .categories import build_category_tree
from .errors import PerPostRenderError, VeloError
from .file_store import FileStore
from .images import ImageResolver
from .models import Post
from .renderer import MarkdownRenderer
from .repository import PostRepository
from .settings import BlogSettings
from .template_renderer import TemplateRenderer

# Thread-local storage for MarkdownRenderer instances
thread_local = threading.local()


def initializer(resolver, templates):
    """Give each worker thread its own markdown parser."""
    thread_local.renderer = MarkdownRenderer(resolver, templates)


def render_post(post):
    return thread_local.renderer.render_post(post)


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total posts generated:",
            "Total images copied:",
            "Missing images:",
            "Build failures:",
            "Building index page",
            "Clearing output directory",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


def setup_logging(log_dir: Optional[str] = 'logs', verbose: bool = False) -> logging.Logger:
    """Set up logging configuration."""
    logger = logging.getLogger('Velo')
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        # Console handler with filter
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        if not verbose:
            console_handler.addFilter(InfoFilter())
        console_formatter = logging.Formatter('%(message)s')
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

        # File handler for all logs
        if log_dir:
            try:
                os.makedirs(log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('velo_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(log_dir, log_filename), encoding='utf-8')
                file_handler.setLevel(logging.DEBUG)
                file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                file_handler.setFormatter(file_formatter)
                logger.addHandler(file_handler)
            except (IOError, OSError, PermissionError) as e:
                logger.warning(f"Could not create log file in {log_dir}: {e}")

    return logger


@dataclass
class BuildResult:
    posts_generated: int = 0
    images_copied: int = 0
    images_missing: int = 0
    skipped_files: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.failures and not self.skipped_files


class SiteBuilder:
    """Build the static site: posts, copied images and the index page."""

    def __init__(self, settings: BlogSettings, file_store: Optional[FileStore] = None, verbose: bool = False):
        self.settings = settings
        self.logger = setup_logging(settings.log_dir, verbose)
        self.file_store = file_store or FileStore()
        self.repository = PostRepository(settings, self.file_store)
        self.resolver = ImageResolver(settings)
        self.templates = TemplateRenderer(settings.template_path, settings.site_title)
        self.renderer = MarkdownRenderer(self.resolver, self.templates)

    def build(self) -> BuildResult:
        """
        Run a full build.

        Raises:
            ConfigurationError: If the settings are incomplete
            ContentDirectoryMissing: If the content directory does not exist
            IOWriteError: If the output directory cannot be created
        """
        start_time = time.time()
        result = BuildResult()

        self.settings.validate()
        self.prepare_output()
        self.resolver.reset()

        self.repository.force_reload()
        posts = self.repository.get_all_posts()
        result.skipped_files = list(self.repository.skipped_files)
        for path in result.skipped_files:
            result.failures.append(f"Could not parse {path}")

        if not posts:
            self.logger.warning("No markdown files found to process.")

        rendered = self.render_posts(posts, result)
        result.posts_generated = self.write_posts(rendered, result)
        result.images_copied = self.copy_images(result)
        result.images_missing = len(self.resolver.missing)
        self.build_index_page(rendered, result)

        result.duration = time.time() - start_time
        self.logger.info(f"Site build completed in {result.duration:.2f} seconds")
        self.logger.info(f"Total posts generated: {result.posts_generated}")
        self.logger.info(f"Total images copied: {result.images_copied}")
        if result.images_missing:
            self.logger.info(f"Missing images: {result.images_missing}")
        if result.failures:
            self.logger.info(f"Build failures: {len(result.failures)}")
        return result

    def prepare_output(self):
        """Create the output directories, clearing the output first if configured."""
        output_path = self.settings.output_path
        if self.settings.clear_output_on_start and os.path.isdir(output_path):
            self.logger.info(f"Clearing output directory {output_path}")
            self.file_store.clear_directory(output_path)
        self.file_store.ensure_directory_exists(output_path)
        self.file_store.ensure_directory_exists(self.settings.image_output_path)

    def render_posts(self, posts: List[Post], result: BuildResult) -> List[Post]:
        """Render every post. Failed posts are recorded and left out of the returned list."""
        if self.settings.max_workers > 1 and len(posts) > 1:
            self.logger.info(f"Rendering {len(posts)} posts with {self.settings.max_workers} threads")
            failed = self._render_with_threads(posts, result)
        else:
            self.logger.info(f"Rendering {len(posts)} posts single-threaded")
            failed = self._render_single_threaded(posts, result)
        return [post for post in posts if id(post) not in failed]

    def _render_single_threaded(self, posts: List[Post], result: BuildResult) -> set:
        failed = set()
        for post in posts:
            try:
                self.renderer.render_post(post)
            except PerPostRenderError as e:
                result.failures.append(str(e))
                failed.add(id(post))
        return failed

    def _render_with_threads(self, posts: List[Post], result: BuildResult) -> set:
        failed = set()
        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            initializer=initializer,
            initargs=(self.resolver, self.templates)
        ) as executor:
            futures = {executor.submit(render_post, post): post for post in posts}
            for future in as_completed(futures):
                post = futures[future]
                try:
                    future.result()
                except PerPostRenderError as e:
                    result.failures.append(str(e))
                    failed.add(id(post))
        return failed

    def write_posts(self, posts: List[Post], result: BuildResult) -> int:
        written = 0
        for post in posts:
            path = os.path.join(self.settings.output_path, post.output_file_name)
            try:
                self.file_store.write_text(path, post.rendered_html)
                written += 1
                self.logger.debug(f"Wrote {path}")
            except VeloError as e:
                result.failures.append(str(e))
        return written

    def copy_images(self, result: BuildResult) -> int:
        """Copy every image referenced during the build to the image output folder."""
        copied = 0
        for source, name in sorted(self.resolver.mapping.items(), key=lambda item: item[1]):
            destination = os.path.join(self.settings.image_output_path, name)
            try:
                if self.file_store.copy_file(source, destination):
                    copied += 1
                    self.logger.debug(f"Copied image: {source} -> {destination}")
            except (VeloError, IOError, OSError) as e:
                self.logger.error(f"Failed to copy image {source}: {e}")
                result.failures.append(f"Failed to copy image {source}: {e}")
        return copied

    def build_index_page(self, posts: List[Post], result: BuildResult) -> Tuple[bool, str]:
        """Build index.html from the posts that rendered successfully."""
        self.logger.info("Building index page")
        path = os.path.join(self.settings.output_path, 'index.html')
        try:
            tree = build_category_tree(posts)
            html = self.templates.render_index(posts, tree)
            self.file_store.write_text(path, html)
        except Exception as e:
            self.logger.error(f"Failed to build index page: {e}")
            result.failures.append(f"Failed to build index page: {e}")
            return False, path
        return True, path
