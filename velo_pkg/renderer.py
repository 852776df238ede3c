"""
Markdown to HTML conversion for a single post.

The pipeline for each post is: rewrite image references, convert the
Markdown with mistune, remove leaked local paths, record the images the page
uses, render the page template and clean the result once more.
"""

import re
import logging
from typing import Dict, List, Optional

import mistune

from .errors import PerPostRenderError
from .images import (IMAGE_URL_PREFIX, ImageResolver, rewrite_image_references,
                     strip_local_path_leakage)
from .models import Post, is_filesystem_path
from .template_renderer import TemplateRenderer

IMG_SRC_RE = re.compile(r'<img\b[^>]*?\bsrc\s*=\s*(["\'])(.*?)\1', re.IGNORECASE | re.DOTALL)

EMOJI_PATTERN = r':(?P<emoji_name>[a-z0-9_+\-]+):'

EMOJI = {
    'smile': '\U0001F604',
    'smiley': '\U0001F603',
    'grin': '\U0001F601',
    'laughing': '\U0001F606',
    'wink': '\U0001F609',
    'blush': '\U0001F60A',
    'heart_eyes': '\U0001F60D',
    'thinking': '\U0001F914',
    'cry': '\U0001F622',
    'sob': '\U0001F62D',
    'angry': '\U0001F620',
    'sweat_smile': '\U0001F605',
    'joy': '\U0001F602',
    'heart': '❤️',
    'star': '⭐',
    'fire': '\U0001F525',
    'tada': '\U0001F389',
    'rocket': '\U0001F680',
    'sparkles': '✨',
    'bulb': '\U0001F4A1',
    'memo': '\U0001F4DD',
    'book': '\U0001F4D6',
    'camera': '\U0001F4F7',
    'coffee': '☕',
    'warning': '⚠️',
    'x': '❌',
    'white_check_mark': '✅',
    'heavy_check_mark': '✔️',
    'question': '❓',
    'exclamation': '❗',
    'point_right': '\U0001F449',
    'thumbsup': '\U0001F44D',
    '+1': '\U0001F44D',
    'thumbsdown': '\U0001F44E',
    '-1': '\U0001F44E',
    'clap': '\U0001F44F',
    'eyes': '\U0001F440',
    'bug': '\U0001F41B',
    'wrench': '\U0001F527',
    'lock': '\U0001F512',
    'zap': '⚡',
    'sunny': '☀️',
    'cloud': '☁️',
}


def parse_emoji(inline, m, state):
    char = EMOJI.get(m.group('emoji_name'))
    if char is None:
        return None
    state.append_token({'type': 'emoji', 'raw': char, 'attrs': {'name': m.group('emoji_name')}})
    return m.end()


def render_emoji(renderer, text, name):
    return f'<span class="emoji" title=":{name}:">{text}</span>'


def emoji(md):
    """mistune plugin turning :shortcode: into the emoji character."""
    md.inline.register('emoji', EMOJI_PATTERN, parse_emoji, before='link')
    if md.renderer and md.renderer.NAME == 'html':
        md.renderer.register('emoji', render_emoji)


def create_markdown_parser():
    """Create a Mistune markdown parser with a custom renderer."""
    class CustomRenderer(mistune.HTMLRenderer):
        def __init__(self):
            super().__init__(escape=False)

        def block_code(self, code, info=None):
            escaped_code = mistune.escape(code)
            if info:
                language = mistune.escape(info.strip().split(None, 1)[0])
                return '<pre style="white-space: pre-wrap;"><code class="language-{}">{}</code></pre>\n'.format(language, escaped_code)
            return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>\n'.format(escaped_code)

    return mistune.create_markdown(
        renderer=CustomRenderer(),
        plugins=['table', 'task_lists', 'strikethrough', 'url', emoji]
    )


def extract_image_paths(html: str) -> List[str]:
    """Web paths of the images used by html, in order of appearance, without duplicates.

    Remote URLs are kept as they are, local relative paths are placed under
    images/, and file:// URLs or absolute file system paths are dropped.
    """
    paths = []
    for match in IMG_SRC_RE.finditer(html):
        src = match.group(2).strip()
        lowered = src.lower()
        if not src or lowered.startswith(('file:', 'data:')) or is_filesystem_path(src):
            continue
        if not lowered.startswith(('http://', 'https://', '//')) and not src.startswith(IMAGE_URL_PREFIX):
            if src.startswith('./'):
                src = src[2:]
            src = IMAGE_URL_PREFIX + src
        if src not in paths:
            paths.append(src)
    return paths


class MarkdownRenderer:
    def __init__(self, resolver: ImageResolver, templates: TemplateRenderer, max_cleanup_passes: int = 3):
        self.resolver = resolver
        self.templates = templates
        self.max_cleanup_passes = max_cleanup_passes
        self.logger = logging.getLogger('Velo.MarkdownRenderer')
        self.markdown_parser = create_markdown_parser()

    def markdown_filter(self, text: str) -> str:
        """Convert markdown text to HTML."""
        return self.markdown_parser(text)

    def render_body(self, post: Post) -> str:
        """Convert the post's Markdown to an HTML fragment and record its images."""
        post.clear_images()
        markdown = rewrite_image_references(
            post.raw_body,
            lambda reference: self.resolver.resolve(reference, post.source_path),
        )
        body_html = strip_local_path_leakage(self.markdown_filter(markdown), self.max_cleanup_passes)
        for path in extract_image_paths(body_html):
            post.add_image_path(path)
        return body_html

    def render_post(self, post: Post, context: Optional[Dict] = None) -> str:
        """
        Render a full page for post and store it in post.rendered_html.

        Raises:
            PerPostRenderError: If conversion or templating fails
        """
        try:
            body_html = self.render_body(post)
            page = self.templates.render_post(post, body_html, **(context or {}))
            page = strip_local_path_leakage(page, self.max_cleanup_passes)
        except Exception as e:
            self.logger.error(f"Failed to render post '{post.title}' ({post.source_path}): {e}")
            raise PerPostRenderError(post.title, post.source_path, e) from e

        post.rendered_html = page
        self.logger.debug(f"Rendered post '{post.title}' with {len(post.image_paths)} images")
        return page
