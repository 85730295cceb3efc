"""
Tests for the env config mutator — line-preserving KEY=VALUE edits.
"""

from pathlib import Path

import pytest

from stackup.core.errors import MutationError
from stackup.core.services.env_config import EnvConfig

SAMPLE = (
    "# database\n"
    "MYSQL_HOST=old\n"
    "MYSQL_PORT=3306\n"
    "\n"
    "DOCKER_MYSQL_IMAGE=mysql:8   # keep in sync with prod\n"
    "MYSQL=unused\n"
)


class TestReads:
    def test_get_value(self):
        config = EnvConfig.from_text(SAMPLE)
        assert config.get_value("MYSQL_HOST") == "old"
        assert config.get_value("DOCKER_MYSQL_IMAGE") == "mysql:8"

    def test_get_value_is_case_insensitive(self):
        assert EnvConfig.from_text(SAMPLE).get_value("mysql_port") == "3306"

    def test_missing_key_reads_empty(self):
        config = EnvConfig.from_text(SAMPLE)
        assert config.get_value("REDIS_HOST") == ""
        assert not config.has("REDIS_HOST")

    def test_first_duplicate_wins(self):
        config = EnvConfig.from_text("KEY=first\nKEY=second\n")
        assert config.get_value("KEY") == "first"
        config.set_value("KEY", "changed")
        assert config.dumps() == "KEY=changed\nKEY=second\n"

    def test_keys_skip_comments_and_blanks(self):
        assert EnvConfig.from_text(SAMPLE).keys() == [
            "MYSQL_HOST", "MYSQL_PORT", "DOCKER_MYSQL_IMAGE", "MYSQL",
        ]

    def test_missing_file_is_empty(self, tmp_path: Path):
        config = EnvConfig(tmp_path / ".env")
        assert not config.exists
        assert config.keys() == []
        assert not config.exists


class TestSetValue:
    def test_rewrites_only_the_target_line(self):
        config = EnvConfig.from_text(SAMPLE)
        assert config.set_value("MYSQL_HOST", "db")
        assert config.dumps() == SAMPLE.replace("MYSQL_HOST=old", "MYSQL_HOST=db")
        assert config.dirty

    def test_keeps_trailing_comment(self):
        config = EnvConfig.from_text(SAMPLE)
        config.set_value("DOCKER_MYSQL_IMAGE", "mariadb:10")
        assert "DOCKER_MYSQL_IMAGE=mariadb:10   # keep in sync with prod\n" in config.dumps()

    def test_same_value_is_a_no_op(self):
        config = EnvConfig.from_text(SAMPLE)
        assert not config.set_value("MYSQL_PORT", "3306")
        assert config.dumps() == SAMPLE
        assert not config.dirty

    def test_idempotent(self):
        config = EnvConfig.from_text(SAMPLE)
        config.set_value("MYSQL_HOST", "db")
        once = config.dumps()
        config.set_value("MYSQL_HOST", "db")
        assert config.dumps() == once

    def test_missing_key_changes_nothing(self):
        config = EnvConfig.from_text(SAMPLE)
        assert not config.set_value("DOCKER_PHP_IMAGE", "php8")
        assert config.dumps() == SAMPLE

    def test_empty_value(self):
        config = EnvConfig.from_text("A=1\n")
        config.set_value("A", "")
        assert config.dumps() == "A=\n"
        assert config.get_value("A") == ""

    def test_preserves_crlf(self):
        config = EnvConfig.from_text("A=1\r\nB=2\r\n")
        config.set_value("A", "9")
        assert config.dumps() == "A=9\r\nB=2\r\n"

    def test_preserves_missing_final_newline(self):
        config = EnvConfig.from_text("A=1\nB=2")
        config.set_value("B", "3")
        assert config.dumps() == "A=1\nB=3"

    def test_line_break_in_value_rejected(self):
        config = EnvConfig.from_text(SAMPLE)
        with pytest.raises(MutationError):
            config.set_value("MYSQL_HOST", "db\nINJECTED=1")
        assert config.dumps() == SAMPLE

    def test_value_that_would_read_back_differently_rejected(self):
        config = EnvConfig.from_text(SAMPLE)
        with pytest.raises(MutationError) as exc:
            config.set_value("MYSQL_HOST", "db # not a comment")
        assert exc.value.hint
        assert config.get_value("MYSQL_HOST") == "old"


class TestConfigureSection:
    class Prompt:
        def __init__(self, answers):
            self.answers = answers
            self.asked = []

        def ask(self, question, default=""):
            self.asked.append((question, default))
            return self.answers.get(question, default)

    def test_changes_only_answered_lines(self):
        config = EnvConfig.from_text(SAMPLE)
        prompt = self.Prompt({"MYSQL_HOST": "new", "MYSQL_PORT": "3306"})
        outcome = config.configure_section("mysql", prompt)

        assert outcome.matched == ["MYSQL_HOST", "MYSQL_PORT"]
        assert outcome.changed == ["MYSQL_HOST"]
        lines = config.dumps().split("\n")
        assert lines[1] == "MYSQL_HOST=new"
        assert lines[2] == "MYSQL_PORT=3306"

    def test_prompts_with_current_value_as_default(self):
        prompt = self.Prompt({})
        EnvConfig.from_text(SAMPLE).configure_section("MYSQL", prompt)
        assert prompt.asked == [("MYSQL_HOST", "old"), ("MYSQL_PORT", "3306")]

    def test_key_equal_to_prefix_is_not_part_of_section(self):
        prompt = self.Prompt({})
        EnvConfig.from_text(SAMPLE).configure_section("MYSQL", prompt)
        assert ("MYSQL", "unused") not in prompt.asked

    def test_empty_answer_keeps_value(self):
        config = EnvConfig.from_text(SAMPLE)
        config.configure_section("mysql", self.Prompt({"MYSQL_HOST": ""}))
        assert config.get_value("MYSQL_HOST") == "old"

    def test_nothing_to_configure(self):
        config = EnvConfig.from_text(SAMPLE)
        outcome = config.configure_section("redis", self.Prompt({}))
        assert outcome.nothing_to_configure
        assert config.dumps() == SAMPLE


class TestLoadSave:
    def test_round_trip_is_byte_identical(self, tmp_path: Path):
        path = tmp_path / ".env"
        raw = b"# x\r\nA=1  # one\r\n\r\nB=\xc3\xa9\n"
        path.write_bytes(raw)
        config = EnvConfig(path)
        config.save()
        assert path.read_bytes() == raw

    def test_save_writes_changes(self, tmp_path: Path):
        path = tmp_path / "docker" / ".env"
        path.parent.mkdir()
        path.write_text("A=1\nB=2\n")
        config = EnvConfig(path)
        config.set_value("B", "3")
        config.save()
        assert path.read_text() == "A=1\nB=3\n"
        assert not config.dirty

    def test_reload_drops_unsaved_changes(self, tmp_path: Path):
        path = tmp_path / ".env"
        path.write_text("A=1\n")
        config = EnvConfig(path)
        config.set_value("A", "2")
        config.reload()
        assert config.get_value("A") == "1"
