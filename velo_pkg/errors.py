"""
Error types raised by Velo.

Configuration and content-directory problems are fatal and stop a run before
any output is written. Per-file and per-post errors are isolated: the file or
post is skipped, the failure is logged and counted, and the build carries on.
"""


class VeloError(Exception):
    """Base class for all Velo errors."""


class ConfigurationError(VeloError):
    """A required setting is missing or the config file cannot be used."""


class ContentDirectoryMissing(ConfigurationError, FileNotFoundError):
    """The configured content root does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Content directory does not exist: {path}")


class PerFileParseError(VeloError):
    """A single Markdown file could not be read or its front matter parsed."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse {path}: {reason}")


class ImageResolutionMiss(VeloError):
    """A referenced image could not be found anywhere.

    Only used to describe the condition in logs; the resolver degrades to a
    placeholder path instead of raising.
    """

    def __init__(self, reference, tried):
        self.reference = reference
        self.tried = tried
        super().__init__(f"Image not found: {reference} (tried {len(tried)} locations)")


class PerPostRenderError(VeloError):
    """Markdown conversion or template rendering failed for one post."""

    def __init__(self, title, source_path, cause):
        self.title = title
        self.source_path = source_path
        self.cause = cause
        super().__init__(f"Failed to render '{title}' ({source_path or 'no source'}): {cause}")


class IOWriteError(VeloError, OSError):
    """An output file or directory could not be created or written."""

    def __init__(self, path, cause):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to write {path}: {cause}")
