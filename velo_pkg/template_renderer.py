"""
Jinja2 page templates. Templates in the configured template directory take
precedence over the built-in ones shipped in velo_pkg/templates.
"""

import os
import logging
from datetime import datetime
from typing import List, Optional

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape
from jinja2.utils import htmlsafe_json_dumps

from .models import CategoryNode, Post

INDEX_TEMPLATE = 'index.html'
POST_TEMPLATE = 'post.html'


class TemplateRenderer:
    def __init__(self, template_dir: Optional[str] = None, site_title: str = 'Velo'):
        self.template_dir = template_dir
        self.site_title = site_title
        self.logger = logging.getLogger('Velo.TemplateRenderer')

        loaders = []
        if template_dir and os.path.isdir(template_dir):
            loaders.append(FileSystemLoader(template_dir))
        elif template_dir:
            self.logger.debug(f"Template directory {template_dir} not found, using built-in templates")
        loaders.append(PackageLoader('velo_pkg', 'templates'))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(['html', 'xml']),
        )

    def has_custom_template(self, name: str) -> bool:
        return bool(self.template_dir) and os.path.isfile(os.path.join(self.template_dir, name))

    def render_template(self, template_name: str, **context) -> str:
        """Render a Jinja2 template."""
        template = self.env.get_template(template_name)
        context.setdefault('site_title', self.site_title)
        return template.render(**context)

    def render_index(self, posts: List[Post], category_tree: CategoryNode, **context) -> str:
        """Render the index page listing posts and the category navigation."""
        summaries = [post.to_summary() for post in posts]
        if self.has_custom_template(INDEX_TEMPLATE):
            self.logger.debug(f"Using custom index template from {self.template_dir}")
        return self.render_template(
            INDEX_TEMPLATE,
            posts=summaries,
            posts_json=htmlsafe_json_dumps(summaries),
            post_count=len(summaries),
            category_tree=category_tree,
            generated_at=datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            **context
        )

    def render_post(self, post: Post, body_html: str, **context) -> str:
        """Render a post page. body_html is inserted without escaping."""
        return self.render_template(
            POST_TEMPLATE,
            post=post.to_summary(),
            content=body_html,
            **context
        )
