#!/usr/bin/env python3
"""
Command-line interface for Velo - Markdown knowledge base to static site.
"""

import os
import sys
import argparse
from typing import List, Optional

from . import __version__
from .core import SiteBuilder
from .errors import VeloError
from .settings import BlogSettings, VeloSettings

SETTING_ARGS = [
    'content', 'output', 'templates', 'images', 'clear_output', 'auto_yaml',
    'auto_save', 'max_workers', 'site_title', 'log_dir',
]


def create_sample_content(content_dir: str = 'content') -> None:
    """Create a sample post so a fresh project builds out of the box."""
    current_dir = os.getcwd()

    sample_post = """---
title: Welcome to Velo
date: 2025-06-16
author: ''
tags:
  - velo
categories:
  - guides
---

# Welcome to Velo

Every Markdown file under the content folder becomes a page. Folders become
categories, so this post is filed under **notes / guides**.

Images referenced with a path relative to the note are copied to the output
automatically and every page links to its flat copy.

Drafts stay private: put them in a `drafts` folder, prefix the file name
with `draft-`, or set `draft: true` in the front matter. :sparkles:
"""

    posts_dir = os.path.join(current_dir, content_dir, 'notes')
    os.makedirs(posts_dir, exist_ok=True)
    post_path = os.path.join(posts_dir, 'welcome.md')
    if os.path.exists(post_path):
        print(f"Sample post already exists: {os.path.relpath(post_path)}")
    else:
        with open(post_path, 'w', encoding='utf-8') as f:
            f.write(sample_post)
        print(f"Created sample post: {os.path.relpath(post_path)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Velo - Markdown knowledge base to static site')
    parser.add_argument('--content', type=str,
                        help='Content directory containing markdown files')
    parser.add_argument('--output', type=str,
                        help='Output directory for generated site')
    parser.add_argument('--templates', type=str,
                        help='Directory with custom index.html / post.html templates')
    parser.add_argument('--images', type=str,
                        help='Output directory for copied images (default: <output>/images)')
    parser.add_argument('--clear-output', dest='clear_output', action='store_true', default=None,
                        help='Delete the contents of the output directory before building')
    parser.add_argument('--no-clear-output', dest='clear_output', action='store_false', default=None)
    parser.add_argument('--auto-yaml', dest='auto_yaml', action='store_true', default=None,
                        help='Add default front matter to files that have none')
    parser.add_argument('--no-auto-yaml', dest='auto_yaml', action='store_false', default=None)
    parser.add_argument('--auto-save', dest='auto_save', action='store_true', default=None,
                        help='Write added front matter back to the source files')
    parser.add_argument('--no-auto-save', dest='auto_save', action='store_false', default=None)
    parser.add_argument('--max-workers', type=int,
                        help='Number of threads used to render posts')
    parser.add_argument('--site-title', type=str, help='Site title shown on every page')
    parser.add_argument('--log-dir', type=str, help='Directory for build log files')
    parser.add_argument('--config', type=str,
                        help='Configuration file to use instead of velo.yml / velo.yaml / velo.json')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file')
    parser.add_argument('--verbose', action='store_true',
                        help='Show all log messages on the console')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle init command
    if args.init:
        settings_loader = VeloSettings()
        try:
            config_path = settings_loader.create_sample_config(args.init)
        except (IOError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"Created sample configuration file: {config_path}")
        create_sample_content()
        print("Edit the configuration file, then run 'velo' to build your site.")
        return

    # Convert argparse Namespace to dict, excluding None values for proper merging
    args_dict = {k: v for k, v in vars(args).items() if k in SETTING_ARGS and v is not None}

    try:
        settings_loader = VeloSettings()
        settings_loader.load_settings(args.config, required=not (args.content and args.output))

        # Command line arguments take precedence
        final_settings = settings_loader.merge_with_args(args_dict)
        settings = BlogSettings.from_dict(final_settings).validate()

        builder = SiteBuilder(settings, verbose=args.verbose)
        result = builder.build()
    except VeloError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not result.succeeded:
        for failure in result.failures:
            print(f"Failed: {failure}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
