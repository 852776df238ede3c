"""
File-system access used by the builder. Reads raise FileNotFoundError for
missing files; failed writes are logged and raised as IOWriteError.
"""

import os
import shutil
import fnmatch
import logging
from datetime import datetime
from typing import List, Tuple

from .errors import IOWriteError


class FileStore:
    def __init__(self):
        self.logger = logging.getLogger('Velo.FileStore')

    def read_text(self, path: str) -> str:
        """Read a UTF-8 text file. A leading byte order mark is dropped."""
        with open(path, 'r', encoding='utf-8-sig') as f:
            return f.read()

    def write_text(self, path: str, content: str):
        self.ensure_directory_exists(os.path.dirname(path))
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write file {path}: {e}")
            raise IOWriteError(path, e) from e

    def copy_file(self, source: str, destination: str, overwrite: bool = True) -> bool:
        """Copy source to destination. Returns False if the copy was skipped."""
        if not os.path.isfile(source):
            raise FileNotFoundError(f"Source file not found: {source}")
        if not overwrite and os.path.exists(destination):
            return False
        self.ensure_directory_exists(os.path.dirname(destination))
        try:
            shutil.copy2(source, destination)
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to copy {source} to {destination}: {e}")
            raise IOWriteError(destination, e) from e
        return True

    def ensure_directory_exists(self, path: str):
        if not path:
            return
        try:
            os.makedirs(path, exist_ok=True)
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to create directory {path}: {e}")
            raise IOWriteError(path, e) from e

    def list_files(self, directory: str, pattern: str = '*.md', recursive: bool = True) -> List[str]:
        """List files matching pattern, sorted for a stable processing order."""
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"Directory not found: {directory}")

        matches = []
        if recursive:
            for root, dirs, files in os.walk(directory):
                dirs.sort()
                for name in sorted(files):
                    if fnmatch.fnmatch(name, pattern):
                        matches.append(os.path.join(root, name))
        else:
            for name in sorted(os.listdir(directory)):
                path = os.path.join(directory, name)
                if os.path.isfile(path) and fnmatch.fnmatch(name, pattern):
                    matches.append(path)
        return matches

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def last_modified_time(self, path: str) -> datetime:
        return datetime.fromtimestamp(os.path.getmtime(path))

    def clear_directory(self, path: str) -> Tuple[int, int]:
        """
        Delete everything inside path, keeping the directory itself.

        Entries that cannot be removed are logged and skipped.

        Returns:
            (deleted, failed) entry counts
        """
        if not os.path.isdir(path):
            return 0, 0

        deleted = 0
        failed = 0
        for item in sorted(os.listdir(path)):
            item_path = os.path.join(path, item)
            try:
                if os.path.isdir(item_path) and not os.path.islink(item_path):
                    shutil.rmtree(item_path)
                else:
                    os.remove(item_path)
                deleted += 1
            except (IOError, OSError, PermissionError) as e:
                self.logger.warning(f"Could not delete {item_path}: {e}")
                failed += 1

        self.logger.info(f"Cleared output directory {path}: {deleted} deleted, {failed} failed")
        return deleted, failed
