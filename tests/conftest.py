"""Test configuration and fixtures for Velo tests."""

import pytest
import tempfile
import shutil
import os
from pathlib import Path

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from velo_pkg.settings import BlogSettings


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def content_dir(temp_dir):
    """Create an empty content directory."""
    content_dir = Path(temp_dir) / 'content'
    content_dir.mkdir()
    return str(content_dir)


@pytest.fixture
def mock_output_dir(temp_dir):
    """Path of the output directory (not created)."""
    return str(Path(temp_dir) / 'output')


@pytest.fixture
def make_file(content_dir):
    """Write a file below the content directory and return its path."""
    def _make_file(relative_path, text='', data=None):
        path = Path(content_dir) / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if data is not None:
            path.write_bytes(data)
        else:
            path.write_text(text, encoding='utf-8')
        return str(path)
    return _make_file


@pytest.fixture
def settings_factory(content_dir, mock_output_dir, temp_dir):
    """Build BlogSettings pointing at the temporary directories."""
    def _settings(**overrides):
        values = {
            'content_path': content_dir,
            'output_path': mock_output_dir,
            'template_path': os.path.join(temp_dir, 'templates'),
            'log_dir': None,
        }
        values.update(overrides)
        return BlogSettings(**values)
    return _settings


@pytest.fixture
def mock_templates_dir(temp_dir):
    """Create a templates directory with custom index and post templates."""
    templates_dir = Path(temp_dir) / 'templates'
    templates_dir.mkdir(exist_ok=True)

    (templates_dir / 'post.html').write_text("""<html>
<head><title>{{ post.title }}</title></head>
<body>
    <h1>CUSTOM {{ post.title }}</h1>
    <div>{{ content|safe }}</div>
</body>
</html>""", encoding='utf-8')

    (templates_dir / 'index.html').write_text("""<html>
<body>
    <p>CUSTOM INDEX {{ post_count }}</p>
    {% for post in posts %}<a href="{{ post.url }}">{{ post.title }}</a>{% endfor %}
</body>
</html>""", encoding='utf-8')

    return str(templates_dir)


@pytest.fixture
def sample_image_data():
    """Sample image data for testing."""
    # Create a minimal PNG image (1x1 pixel)
    png_data = b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde\x00\x00\x00\tpHYs\x00\x00\x0b\x13\x00\x00\x0b\x13\x01\x00\x9a\x9c\x18\x00\x00\x00\nIDATx\x9cc\xf8\x00\x00\x00\x01\x00\x01\x00\x00\x00\x00IEND\xaeB`\x82'
    return png_data
