#!/usr/bin/env python3
"""
Settings loader for Velo.
Supports configuration from velo.yml, velo.yaml or velo.json files, merged
with command-line overrides and turned into a typed BlogSettings object.
"""

import os
import json
import yaml
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from .errors import ConfigurationError, ContentDirectoryMissing

DEFAULT_EXCLUDED_DIRECTORIES = ['drafts', 'temp', 'tmp', '.git', '.vs', 'bin', 'obj']

# Key names used by older JSON configs, mapped to the current names
LEGACY_KEYS = {
    'blogcontentpath': 'content',
    'htmloutputpath': 'output',
    'imageoutputpath': 'images',
    'templatepath': 'templates',
    'clearoutputdirectoryonstart': 'clear_output',
    'autoaddyamlheader': 'auto_yaml',
    'autosavemodified': 'auto_save',
    'mergedirectorycategories': 'merge_categories',
    'excludeddirectories': 'excluded_directories',
}


def parse_bool(value: object, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'y', 'on'}
    return default


def parse_int(value: object, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def parse_list(value: object) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(',') if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


class VeloSettings:
    """Load and manage Velo configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'content': None,
        'output': None,
        'images': None,
        'templates': 'templates',
        'clear_output': False,
        'auto_yaml': False,
        'auto_save': False,
        'merge_categories': True,
        'excluded_directories': list(DEFAULT_EXCLUDED_DIRECTORIES),
        'image_directory_aliases': [],
        'max_workers': 1,
        'site_title': 'Velo',
        'log_dir': 'logs',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['velo.yml', 'velo.yaml', 'velo.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.settings['excluded_directories'] = list(DEFAULT_EXCLUDED_DIRECTORIES)
        self.config_file_path = None

    def load_settings(self, config_file: Optional[str] = None, required: bool = False) -> Dict[str, Any]:
        """
        Load settings from a configuration file.

        Args:
            config_file: Explicit config file name or path. When given, the file must exist.
            required: Raise if no default config file can be found.

        Returns:
            Dictionary of configuration settings

        Raises:
            ConfigurationError: If a required config file is missing or cannot be parsed
        """
        if config_file:
            path = config_file if os.path.isabs(config_file) else os.path.join(self.config_dir, config_file)
            if not os.path.exists(path):
                raise ConfigurationError(f"Configuration file not found: {path}")
        else:
            path = self._find_config_file()
            if path is None:
                if required:
                    raise ConfigurationError(
                        f"No configuration file found in {self.config_dir} "
                        f"(looked for {', '.join(self.CONFIG_FILES)})"
                    )
                return self.settings.copy()

        self.config_file_path = path
        loaded_settings = self._load_config_file(path)
        if loaded_settings:
            # Merge with defaults, giving preference to loaded settings
            self.settings.update(self._normalize_keys(loaded_settings))
            print(f"Loaded configuration from: {os.path.relpath(path)}")

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    data = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    data = json.load(f) or {}
                else:
                    raise ConfigurationError(f"Unsupported config file format: {file_ext}")
        except PermissionError:
            raise ConfigurationError(f"Permission denied reading configuration file: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file {config_path}: {e}")
        except (IOError, OSError) as e:
            raise ConfigurationError(f"Error reading configuration file {config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")
        return data

    def _normalize_keys(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Flatten a nested blog_settings section and map legacy key names."""
        flat = {}
        for key, value in data.items():
            if isinstance(value, dict) and str(key).lower().replace('_', '') == 'blogsettings':
                flat.update(self._normalize_keys(value))
                continue
            name = str(key)
            flat[LEGACY_KEYS.get(name.lower(), name)] = value
        return flat

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        sample_config = {
            'content': 'content',
            'output': 'output',
            'images': 'output/images',
            'templates': 'templates',
            'clear_output': False,
            'auto_yaml': False,
            'auto_save': False,
            'merge_categories': True,
            'excluded_directories': list(DEFAULT_EXCLUDED_DIRECTORIES),
            'image_directory_aliases': [],
            'site_title': 'My Knowledge Base',
        }

        filename = f'velo.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Velo Configuration File\n\n")
                    f.write("# Paths\n")
                    f.write("content: content\n")
                    f.write("output: output\n")
                    f.write("images: output/images\n")
                    f.write("templates: templates\n\n")
                    f.write("# Build behaviour\n")
                    f.write("clear_output: false\n")
                    f.write("auto_yaml: false      # add front matter to files that have none\n")
                    f.write("auto_save: false      # write that front matter back to the source file\n")
                    f.write("merge_categories: true\n")
                    f.write("excluded_directories:\n")
                    for name in DEFAULT_EXCLUDED_DIRECTORIES:
                        f.write(f"  - {name}\n")
                    f.write("\n# Two folder names tried in place of each other when an image is missing\n")
                    f.write("image_directory_aliases: []\n\n")
                    f.write("site_title: My Knowledge Base\n")
                elif file_format == 'json':
                    json.dump(sample_config, f, indent=2)
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise IOError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()

        # Override with non-None command line arguments
        for key, value in args_dict.items():
            if value is not None:
                if key == 'excluded_directories' and isinstance(value, str):
                    merged[key] = parse_list(value)
                else:
                    merged[key] = value

        return merged


@dataclass
class BlogSettings:
    """Typed, validated view of the merged settings."""
    content_path: str
    output_path: str
    image_output_path: str = ''
    template_path: str = 'templates'
    clear_output_on_start: bool = False
    auto_add_front_matter: bool = False
    auto_save_modified: bool = False
    merge_directory_categories: bool = True
    excluded_directories: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRECTORIES))
    image_directory_aliases: List[str] = field(default_factory=list)
    max_workers: int = 1
    site_title: str = 'Velo'
    log_dir: Optional[str] = 'logs'

    def __post_init__(self):
        self.content_path = _expand(self.content_path)
        self.output_path = _expand(self.output_path)
        self.template_path = _expand(self.template_path)
        if not self.image_output_path and self.output_path:
            self.image_output_path = os.path.join(self.output_path, 'images')
        else:
            self.image_output_path = _expand(self.image_output_path)
        if self.max_workers < 1:
            self.max_workers = 1

    @classmethod
    def from_dict(cls, settings: Dict[str, Any]) -> 'BlogSettings':
        """Build typed settings from a merged settings dictionary."""
        excluded = settings.get('excluded_directories')
        return cls(
            content_path=settings.get('content') or '',
            output_path=settings.get('output') or '',
            image_output_path=settings.get('images') or '',
            template_path=settings.get('templates') or '',
            clear_output_on_start=parse_bool(settings.get('clear_output')),
            auto_add_front_matter=parse_bool(settings.get('auto_yaml')),
            auto_save_modified=parse_bool(settings.get('auto_save')),
            merge_directory_categories=parse_bool(settings.get('merge_categories'), default=True),
            excluded_directories=parse_list(excluded) if excluded is not None else list(DEFAULT_EXCLUDED_DIRECTORIES),
            image_directory_aliases=parse_list(settings.get('image_directory_aliases')),
            max_workers=parse_int(settings.get('max_workers'), 1),
            site_title=str(settings.get('site_title') or 'Velo'),
            log_dir=settings.get('log_dir'),
        )

    def validate(self) -> 'BlogSettings':
        """
        Check required settings.

        Raises:
            ConfigurationError: If a required path is missing
            ContentDirectoryMissing: If the content directory does not exist
        """
        missing = []
        if not self.content_path:
            missing.append('content')
        if not self.output_path:
            missing.append('output')
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")
        if len(self.image_directory_aliases) not in (0, 2):
            raise ConfigurationError("image_directory_aliases must list exactly two folder names")
        if not os.path.isdir(self.content_path):
            raise ContentDirectoryMissing(self.content_path)
        return self


def _expand(path: Optional[str]) -> str:
    if not path:
        return ''
    return os.path.expanduser(str(path))
