"""Tests for remote URL lookup in repository config files."""

from vcgot.got.repo_config import find_config_file, read_remote_url, remote_url

CONFIG = """\
[core]
\trepositoryformatversion = 0
\tbare = true
[remote "origin"]
\turl = ssh://anon@got.example.org/got.git
\tfetch = +refs/heads/*:refs/remotes/origin/*
[remote "mirror"]
\turl = "https://mirror.example.org/got.git"
"""


class TestReadRemoteUrl:
    def test_origin(self):
        assert read_remote_url(CONFIG) == "ssh://anon@got.example.org/got.git"

    def test_named_remote_quoted_value(self):
        assert read_remote_url(CONFIG, "mirror") == "https://mirror.example.org/got.git"

    def test_other_key(self):
        assert read_remote_url(CONFIG, "origin", "fetch") == (
            "+refs/heads/*:refs/remotes/origin/*"
        )

    def test_missing_remote(self):
        assert read_remote_url(CONFIG, "upstream") is None

    def test_url_outside_remote_section_ignored(self):
        text = '[core]\n\turl = wrong\n[remote "origin"]\n\tfetch = x\n'
        assert read_remote_url(text) is None

    def test_comments_skipped(self):
        text = '[remote "origin"]\n# url = commented\n\turl = real\n'
        assert read_remote_url(text) == "real"

    def test_empty_text(self):
        assert read_remote_url("") is None


class TestFindConfigFile:
    def test_bare_repository(self, tmp_path):
        (tmp_path / "config").write_text(CONFIG)
        assert find_config_file(tmp_path) == tmp_path / "config"

    def test_git_directory(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "config").write_text(CONFIG)
        assert find_config_file(tmp_path) == tmp_path / ".git" / "config"

    def test_missing(self, tmp_path):
        assert find_config_file(tmp_path) is None


class TestRemoteUrl:
    def test_reads_file(self, tmp_path):
        (tmp_path / "config").write_text(CONFIG)
        assert remote_url(tmp_path, "mirror") == "https://mirror.example.org/got.git"

    def test_missing_file_is_none(self, tmp_path):
        assert remote_url(tmp_path) is None
