"""
Category handling: categories derived from the folder layout, the merge
policy with declared categories, and the category tree shown on the index.
"""

import os
from typing import Iterable, List, Optional

from .models import CategoryNode, Post
from .settings import DEFAULT_EXCLUDED_DIRECTORIES

ROOT_CATEGORY_NAME = 'Root'


def categories_from_path(file_path: str, content_root: str,
                         excluded_directories: Optional[Iterable[str]] = None) -> List[str]:
    """Return the folder names between content_root and the file, root first.

    Folder names in excluded_directories are skipped (case-insensitive).
    A file outside content_root has no directory categories.
    """
    if excluded_directories is None:
        excluded_directories = DEFAULT_EXCLUDED_DIRECTORIES
    excluded = {name.lower() for name in excluded_directories}

    root = os.path.abspath(content_root)
    path = os.path.abspath(file_path)
    try:
        relative = os.path.relpath(path, root)
    except ValueError:
        # Different drives on Windows
        return []
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return []

    segments = relative.replace('\\', '/').split('/')[:-1]
    return [segment for segment in segments
            if segment and segment != '.' and segment.lower() not in excluded]


def _unique(items: Iterable[str]) -> List[str]:
    result = []
    for item in items:
        if item and item not in result:
            result.append(item)
    return result


def merge_categories(directory_categories: List[str], declared_categories: List[str],
                     merge: bool = True) -> List[str]:
    """Combine folder-derived and front-matter categories.

    With merge enabled the result is the de-duplicated union, folder
    categories first. Without it, declared categories replace the folder
    ones unless none were declared.
    """
    if merge:
        return _unique(list(directory_categories) + list(declared_categories))
    if declared_categories:
        return _unique(declared_categories)
    return _unique(directory_categories)


def build_category_tree(posts: Iterable[Post]) -> CategoryNode:
    """Build a fresh tree from the posts' category paths.

    Each post is counted once on the node at the end of its path; a second
    pass adds descendant counts to every ancestor. Uncategorised posts only
    count towards the root.
    """
    root = CategoryNode(name=ROOT_CATEGORY_NAME, path_segment='')
    for post in posts:
        node = root
        for name in post.categories:
            child = node.find_child(name)
            if child is None:
                segment = f"{node.path_segment}/{name}" if node.path_segment else name
                child = CategoryNode(name=name, path_segment=segment)
                node.children.append(child)
            node = child
        node.post_count += 1

    _propagate_counts(root)
    return root


def _propagate_counts(node: CategoryNode) -> int:
    total = node.post_count
    for child in node.children:
        total += _propagate_counts(child)
    node.post_count = total
    return total
