"""End-to-end tests for SiteBuilder."""

import os
import re
import logging
import pytest
from datetime import datetime
from unittest.mock import patch

from velo_pkg.core import BuildResult, InfoFilter, SiteBuilder, setup_logging
from velo_pkg.errors import ConfigurationError, ContentDirectoryMissing
from velo_pkg.paths import generate_hash_code


def html_files(output_dir):
    return sorted(name for name in os.listdir(output_dir) if name.endswith('.html'))


@pytest.fixture
def scenario(make_file, sample_image_data):
    """posts/tech/a.md with a sibling image and a draft under posts/drafts."""
    make_file('posts/tech/a.md', "# A\n\nSee ![pic](./img.png)\n")
    make_file('posts/tech/img.png', data=sample_image_data)
    make_file('posts/drafts/b.md', "---\ntitle: B\ndraft: true\n---\nHidden")


class TestSiteBuilder:
    """Test cases for a full build."""

    def test_end_to_end(self, scenario, settings_factory, mock_output_dir):
        settings = settings_factory()
        result = SiteBuilder(settings).build()

        assert result.succeeded
        assert result.posts_generated == 1
        assert result.images_copied == 1

        files = html_files(mock_output_dir)
        assert 'index.html' in files
        assert len(files) == 2
        post_file = next(name for name in files if name != 'index.html')
        assert post_file == generate_hash_code('posts/tech/a.md') + '-post.html'

        assert os.listdir(settings.image_output_path) == ['img.png']

        with open(os.path.join(mock_output_dir, post_file), encoding='utf-8') as f:
            page = f.read()
        assert 'src="images/img.png"' in page
        assert 'file://' not in page

        with open(os.path.join(mock_output_dir, 'index.html'), encoding='utf-8') as f:
            index = f.read()
        assert f'href="{post_file}"' in index
        assert '>tech</a> <span class="meta">(1)</span>' in index
        assert 'Hidden' not in index

    def test_rebuild_is_stable(self, scenario, settings_factory, mock_output_dir):
        settings = settings_factory()
        SiteBuilder(settings).build()
        first = html_files(mock_output_dir)
        SiteBuilder(settings).build()
        assert html_files(mock_output_dir) == first
        assert os.listdir(settings.image_output_path) == ['img.png']

    @pytest.mark.parametrize('auto_yaml', [False, True])
    def test_rebuild_next_day_keeps_names(self, scenario, settings_factory, mock_output_dir, auto_yaml):
        settings = settings_factory(auto_add_front_matter=auto_yaml)
        SiteBuilder(settings).build()
        first = html_files(mock_output_dir)

        class NextYear(datetime):
            @classmethod
            def now(cls, tz=None):
                return cls(2030, 1, 2, 9, 0)

        with patch('velo_pkg.paths.datetime', NextYear), patch('velo_pkg.front_matter.datetime', NextYear):
            SiteBuilder(settings).build()
        assert html_files(mock_output_dir) == first

    def test_clear_output_on_start(self, scenario, settings_factory, mock_output_dir):
        os.makedirs(mock_output_dir)
        stale = os.path.join(mock_output_dir, 'stale.html')
        with open(stale, 'w') as f:
            f.write('old')
        SiteBuilder(settings_factory(clear_output_on_start=True)).build()
        assert not os.path.exists(stale)

    def test_output_kept_without_clear(self, scenario, settings_factory, mock_output_dir):
        os.makedirs(mock_output_dir)
        keep = os.path.join(mock_output_dir, 'keep.txt')
        with open(keep, 'w') as f:
            f.write('mine')
        SiteBuilder(settings_factory()).build()
        assert os.path.exists(keep)

    def test_duplicate_image_names(self, make_file, sample_image_data, settings_factory):
        make_file('a/one.md', "![x](photo.jpg)")
        make_file('a/photo.jpg', data=sample_image_data)
        make_file('b/two.md', "![y](photo.jpg)")
        make_file('b/photo.jpg', data=sample_image_data + b'2')
        settings = settings_factory()
        result = SiteBuilder(settings).build()
        assert result.images_copied == 2
        assert sorted(os.listdir(settings.image_output_path)) == ['photo.jpg', 'photo_1.jpg']

    def test_missing_image_is_not_a_failure(self, make_file, settings_factory, mock_output_dir):
        make_file('note.md', "![x](nowhere.png)")
        result = SiteBuilder(settings_factory()).build()
        assert result.succeeded
        assert result.images_missing == 1
        post_file = next(name for name in html_files(mock_output_dir) if name != 'index.html')
        with open(os.path.join(mock_output_dir, post_file), encoding='utf-8') as f:
            assert 'images/missing-nowhere.png' in f.read()

    def test_parse_failure_is_isolated(self, make_file, settings_factory, mock_output_dir):
        make_file('good.md', "---\ntitle: Good\n---\nfine")
        make_file('bad.md', "---\ntitle: [broken\n---\nbody")
        result = SiteBuilder(settings_factory()).build()
        assert not result.succeeded
        assert result.posts_generated == 1
        assert len(result.skipped_files) == 1
        assert len(html_files(mock_output_dir)) == 2

    def test_render_failure_is_isolated(self, make_file, settings_factory, mock_output_dir):
        make_file('good.md', "---\ntitle: Good\n---\nfine")
        make_file('bad.md', "---\ntitle: Bad\n---\nboom")
        builder = SiteBuilder(settings_factory())
        real_render = builder.templates.render_post

        def failing_render(post, body_html, **context):
            if post.title == 'Bad':
                raise RuntimeError('template exploded')
            return real_render(post, body_html, **context)

        with patch.object(builder.templates, 'render_post', side_effect=failing_render):
            result = builder.build()

        assert result.posts_generated == 1
        assert len(result.failures) == 1
        assert 'Bad' in result.failures[0]
        with open(os.path.join(mock_output_dir, 'index.html'), encoding='utf-8') as f:
            index = f.read()
        assert 'Good' in index
        assert '>Bad<' not in index

    def test_threaded_build_matches_sequential(self, make_file, sample_image_data, settings_factory, temp_dir):
        for i in range(6):
            make_file(f'dir{i}/note{i}.md', f"---\ntitle: Note {i}\n---\n![p](photo.jpg)")
            make_file(f'dir{i}/photo.jpg', data=sample_image_data + bytes([i]))

        sequential = settings_factory(output_path=os.path.join(temp_dir, 'seq'))
        threaded = settings_factory(output_path=os.path.join(temp_dir, 'par'), max_workers=4)
        SiteBuilder(sequential).build()
        result = SiteBuilder(threaded).build()

        assert result.posts_generated == 6
        assert html_files(sequential.output_path) == html_files(threaded.output_path)
        images = os.listdir(threaded.image_output_path)
        assert len(images) == 6
        assert all(re.match(r'^photo(_\d)?\.jpg$', name) for name in images)

    def test_custom_templates(self, scenario, settings_factory, mock_templates_dir, mock_output_dir):
        SiteBuilder(settings_factory(template_path=mock_templates_dir)).build()
        with open(os.path.join(mock_output_dir, 'index.html'), encoding='utf-8') as f:
            assert 'CUSTOM INDEX 1' in f.read()

    def test_missing_content_directory(self, settings_factory, temp_dir, mock_output_dir):
        builder = SiteBuilder(settings_factory(content_path=os.path.join(temp_dir, 'nope')))
        with pytest.raises(ContentDirectoryMissing):
            builder.build()
        assert not os.path.exists(mock_output_dir)

    def test_missing_output_setting(self, settings_factory):
        with pytest.raises(ConfigurationError):
            SiteBuilder(settings_factory(output_path='')).build()

    def test_empty_content(self, settings_factory, mock_output_dir):
        result = SiteBuilder(settings_factory()).build()
        assert result.succeeded
        assert html_files(mock_output_dir) == ['index.html']


class TestLogging:
    """Test cases for the logging setup."""

    def test_info_filter(self):
        log_filter = InfoFilter()
        make = lambda level, msg: logging.LogRecord('Velo', level, __file__, 1, msg, None, None)
        assert log_filter.filter(make(logging.INFO, "Total posts generated: 3"))
        assert not log_filter.filter(make(logging.INFO, "Rendered post 'x'"))
        assert log_filter.filter(make(logging.WARNING, "Image not found"))

    def test_setup_logging_is_idempotent(self, temp_dir):
        logger = logging.getLogger('Velo')
        saved = list(logger.handlers)
        for handler in saved:
            logger.removeHandler(handler)
        try:
            log_dir = os.path.join(temp_dir, 'logs')
            setup_logging(log_dir)
            count = len(logger.handlers)
            setup_logging(log_dir)
            assert len(logger.handlers) == count == 2
            assert len(os.listdir(log_dir)) == 1
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            for handler in saved:
                logger.addHandler(handler)

    def test_build_result_success(self):
        assert BuildResult().succeeded
        assert not BuildResult(failures=['x']).succeeded
        assert not BuildResult(skipped_files=['y.md']).succeeded
