"""
Velo - turn a folder of Markdown notes into a static site.

Velo reads Markdown files with optional YAML front matter, derives categories
from the folder layout, copies referenced images to a flat output folder and
renders every note plus a category index through Jinja2 templates.
"""

__version__ = "1.0.0"

from .core import SiteBuilder, BuildResult
from .models import Post, CategoryNode
from .repository import PostRepository
from .settings import BlogSettings, VeloSettings

__all__ = ['SiteBuilder', 'BuildResult', 'Post', 'CategoryNode', 'PostRepository', 'BlogSettings', 'VeloSettings']
