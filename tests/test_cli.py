"""Tests for the velo command-line interface."""

import os
import pytest

from velo_pkg import cli


@pytest.fixture
def workdir(temp_dir, monkeypatch):
    """Run the CLI from inside the temporary directory."""
    monkeypatch.chdir(temp_dir)
    return temp_dir


def write_note(root, relative, text):
    path = os.path.join(root, relative)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
    return path


class TestCli:
    """Test cases for cli.main."""

    def test_build_from_arguments(self, workdir):
        write_note(workdir, 'notes/tech/hello.md', "---\ntitle: Hello\n---\nHi")
        cli.main(['--content', 'notes', '--output', 'site', '--log-dir', 'logs'])
        assert os.path.exists(os.path.join(workdir, 'site', 'index.html'))
        assert len([n for n in os.listdir(os.path.join(workdir, 'site')) if n.endswith('.html')]) == 2

    def test_build_from_config(self, workdir):
        write_note(workdir, 'notes/a.md', "---\ntitle: Alpha\n---\nA")
        with open(os.path.join(workdir, 'velo.yml'), 'w', encoding='utf-8') as f:
            f.write("content: notes\noutput: public\nsite_title: From Config\n")
        cli.main([])
        with open(os.path.join(workdir, 'public', 'index.html'), encoding='utf-8') as f:
            assert 'From Config' in f.read()

    def test_arguments_override_config(self, workdir):
        write_note(workdir, 'notes/a.md', "A")
        with open(os.path.join(workdir, 'velo.yml'), 'w', encoding='utf-8') as f:
            f.write("content: notes\noutput: public\n")
        cli.main(['--output', 'other'])
        assert os.path.exists(os.path.join(workdir, 'other', 'index.html'))
        assert not os.path.exists(os.path.join(workdir, 'public'))

    def test_missing_config_without_paths(self, workdir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 1
        assert 'No configuration file' in capsys.readouterr().err

    def test_explicit_config_missing(self, workdir, capsys):
        os.makedirs(os.path.join(workdir, 'notes'))
        with pytest.raises(SystemExit) as exc_info:
            cli.main(['--config', 'nope.yml', '--content', 'notes', '--output', 'site'])
        assert exc_info.value.code == 1
        assert not os.path.exists(os.path.join(workdir, 'site'))
        assert 'not found' in capsys.readouterr().err

    def test_missing_content_directory(self, workdir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(['--content', 'nope', '--output', 'site'])
        assert exc_info.value.code == 1
        assert not os.path.exists(os.path.join(workdir, 'site'))
        assert 'Content directory does not exist' in capsys.readouterr().err

    def test_failures_exit_non_zero_after_writing(self, workdir, capsys):
        write_note(workdir, 'notes/good.md', "---\ntitle: Good\n---\nok")
        write_note(workdir, 'notes/bad.md', "---\ntitle: [oops\n---\nbody")
        with pytest.raises(SystemExit) as exc_info:
            cli.main(['--content', 'notes', '--output', 'site'])
        assert exc_info.value.code == 1
        assert os.path.exists(os.path.join(workdir, 'site', 'index.html'))
        assert 'bad.md' in capsys.readouterr().err

    def test_boolean_flags(self):
        args = cli.build_parser().parse_args(['--clear-output', '--no-auto-yaml'])
        assert args.clear_output is True
        assert args.auto_yaml is False
        assert args.auto_save is None

    def test_init_creates_config_and_sample(self, workdir):
        cli.main(['--init', 'yml'])
        assert os.path.exists(os.path.join(workdir, 'velo.yml'))
        assert os.path.exists(os.path.join(workdir, 'content', 'notes', 'welcome.md'))
        # The generated project builds
        cli.main([])
        assert os.path.exists(os.path.join(workdir, 'output', 'index.html'))
