"""
Image handling.

ImageResolver maps image references found in posts to files on disk and
gives each file one flat output name for the whole build. The mapping is
also what the builder uses to copy images afterwards.

rewrite_image_references() rewrites Markdown and raw <img> references in a
Markdown document; strip_local_path_leakage() removes any file:// URL that
survives into generated HTML.
"""

import os
import re
import logging
import threading
from typing import Callable, Dict, List, Optional
from urllib.parse import unquote

from .errors import ImageResolutionMiss
from .settings import BlogSettings

IMAGE_URL_PREFIX = 'images/'
MISSING_PREFIX = 'missing-'

_REMOTE_PREFIXES = ('http://', 'https://', '//', 'data:')
_FILE_SCHEME = 'file://'
_WINDOWS_DRIVE_RE = re.compile(r'^/?([A-Za-z]:[\\/])')

# ![alt](destination "title") with an optional <...> destination
MARKDOWN_IMAGE_RE = re.compile(
    r'!\[(?P<alt>[^\]]*)\]\(\s*(?P<dest><[^>\n]*>|[^\s)]+)(?P<title>\s+(?:"[^"\n]*"|\'[^\'\n]*\'))?\s*\)'
)
HTML_IMAGE_SRC_RE = re.compile(r'(<img\b[^>]*?\bsrc\s*=\s*)(["\'])(.*?)\2', re.IGNORECASE | re.DOTALL)
FENCED_CODE_RE = re.compile(r'^(```|~~~).*?^\1[^\n]*$', re.MULTILINE | re.DOTALL)
FILE_URL_ATTRIBUTE_RE = re.compile(
    r'(\s[\w:-]+\s*=\s*)(?:(["\'])\s*file://([^"\']*)\2|file://([^\s"\'<>`=]+))',
    re.IGNORECASE,
)


class ImageResolver:
    """Resolve image references for one build at a time.

    Call reset() before each build. The same source file always maps to the
    same output name within a build; different files with the same name get
    ``name_1.ext``, ``name_2.ext`` and so on.
    """

    def __init__(self, settings: BlogSettings):
        self.settings = settings
        self.logger = logging.getLogger('Velo.ImageResolver')
        self._lock = threading.Lock()
        self._mapping: Dict[str, str] = {}
        self._claimed = set()
        self._file_index: Optional[Dict[str, str]] = None
        self.missing: List[str] = []

    def reset(self):
        with self._lock:
            self._mapping = {}
            self._claimed = set()
            self._file_index = None
            self.missing = []

    @property
    def mapping(self) -> Dict[str, str]:
        """Copy of the absolute source path -> output file name mapping."""
        with self._lock:
            return dict(self._mapping)

    def resolve(self, reference: str, source_path: Optional[str] = None) -> str:
        """Return the web path to use for reference. Never raises for missing files."""
        ref = (reference or '').strip()
        if not ref or ref.lower().startswith(_REMOTE_PREFIXES):
            return ref

        path = ref
        if path.lower().startswith(_FILE_SCHEME):
            path = path[len(_FILE_SCHEME):]
        try:
            path = unquote(path, errors='strict')
        except UnicodeDecodeError as e:
            self.logger.warning(f"Could not decode image path {ref}: {e}")

        drive = _WINDOWS_DRIVE_RE.match(path)
        if drive:
            path = path[drive.start(1):]
            candidate = os.path.normpath(path)
        elif os.path.isabs(path):
            candidate = os.path.normpath(path)
        else:
            base = os.path.dirname(source_path) if source_path else self.settings.content_path
            candidate = os.path.normpath(os.path.join(base, path))

        tried = [candidate]
        found = candidate if os.path.isfile(candidate) else self._find_alternate(candidate, source_path, tried)
        if found:
            return IMAGE_URL_PREFIX + self._claim(found)

        miss = ImageResolutionMiss(ref, tried)
        self.logger.warning(f"{miss} in {source_path or 'unknown source'}")
        with self._lock:
            self.missing.append(ref)
        file_name = os.path.basename(path.replace('\\', '/').rstrip('/')) or 'image'
        return f"{IMAGE_URL_PREFIX}{MISSING_PREFIX}{file_name}"

    def _claim(self, source: str) -> str:
        key = os.path.abspath(source)
        with self._lock:
            existing = self._mapping.get(key)
            if existing:
                return existing
            name = self._unique_name(os.path.basename(key))
            self._mapping[key] = name
            self.logger.debug(f"Mapped image {key} -> {name}")
            return name

    def _unique_name(self, file_name: str) -> str:
        # Caller holds the lock
        stem, ext = os.path.splitext(file_name)
        candidate = file_name
        counter = 1
        while candidate.lower() in self._claimed:
            candidate = f"{stem}_{counter}{ext}"
            counter += 1
        self._claimed.add(candidate.lower())
        return candidate

    def _find_alternate(self, candidate: str, source_path: Optional[str], tried: List[str]) -> Optional[str]:
        file_name = os.path.basename(candidate)
        if not file_name:
            return None

        for alternate in self._alias_variants(candidate):
            tried.append(alternate)
            if os.path.isfile(alternate):
                self.logger.debug(f"Found image via folder alias: {alternate}")
                return alternate

        if source_path:
            stem = os.path.splitext(os.path.basename(source_path))[0]
            assets = os.path.join(os.path.dirname(source_path), f"{stem}.assets", file_name)
            tried.append(assets)
            if os.path.isfile(assets):
                return assets

        found = self._indexed_files().get(file_name.lower())
        if found:
            tried.append(found)
            self.logger.debug(f"Found image by name under content root: {found}")
        return found

    def _alias_variants(self, candidate: str) -> List[str]:
        aliases = self.settings.image_directory_aliases
        if len(aliases) != 2:
            return []
        swap = {aliases[0]: aliases[1], aliases[1]: aliases[0]}
        segments = candidate.split(os.sep)
        variants = []
        for index, segment in enumerate(segments):
            if segment in swap:
                replaced = segments[:index] + [swap[segment]] + segments[index + 1:]
                variants.append(os.sep.join(replaced))
        return variants

    def _indexed_files(self) -> Dict[str, str]:
        """Lower-cased file name -> first path found under the content root."""
        with self._lock:
            if self._file_index is not None:
                return self._file_index
            index = {}
            excluded = {name.lower() for name in self.settings.excluded_directories}
            root = self.settings.content_path
            if root and os.path.isdir(root):
                for current, dirs, files in os.walk(root):
                    dirs[:] = sorted(d for d in dirs if d.lower() not in excluded)
                    for name in sorted(files):
                        index.setdefault(name.lower(), os.path.join(current, name))
            self._file_index = index
            return index


def _apply_outside_code(text: str, func: Callable[[str], str]) -> str:
    parts = []
    position = 0
    for match in FENCED_CODE_RE.finditer(text):
        parts.append(func(text[position:match.start()]))
        parts.append(match.group(0))
        position = match.end()
    parts.append(func(text[position:]))
    return ''.join(parts)


def rewrite_image_references(markdown: str, resolve: Callable[[str], str]) -> str:
    """Replace every image destination in markdown with resolve(destination).

    Handles ``![alt](src "title")``, ``![alt](<src with spaces>)`` and raw
    ``<img src="...">`` tags. Fenced code blocks are left alone.
    """
    def replace_markdown(match):
        destination = match.group('dest')
        if destination.startswith('<') and destination.endswith('>'):
            destination = destination[1:-1]
        resolved = resolve(destination)
        if re.search(r'[\s()<>]', resolved):
            resolved = f"<{resolved}>"
        title = match.group('title') or ''
        return f"![{match.group('alt')}]({resolved}{title})"

    def replace_html(match):
        return f"{match.group(1)}{match.group(2)}{resolve(match.group(3))}{match.group(2)}"

    def rewrite(segment):
        segment = MARKDOWN_IMAGE_RE.sub(replace_markdown, segment)
        return HTML_IMAGE_SRC_RE.sub(replace_html, segment)

    return _apply_outside_code(markdown, rewrite)


def _file_url_to_image_path(match) -> str:
    quote = match.group(2) or '"'
    value = match.group(3) if match.group(2) else match.group(4)
    path = unquote(value).replace('\\', '/').rstrip('/')
    file_name = path.rsplit('/', 1)[-1]
    return f"{match.group(1)}{quote}{IMAGE_URL_PREFIX}{file_name}{quote}"


def strip_local_path_leakage(html: str, max_passes: int = 3) -> str:
    """Rewrite attribute values that start with file:// to images/<file name>.

    Repeated until nothing changes, at most max_passes times. Applying it to
    its own output changes nothing.
    """
    for _ in range(max_passes):
        cleaned = FILE_URL_ATTRIBUTE_RE.sub(_file_url_to_image_path, html)
        if cleaned == html:
            break
        html = cleaned
    return html
