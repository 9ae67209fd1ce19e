"""Tests for the click CLI commands that do not call the backend."""

import pytest
from dataclasses import replace
from unittest.mock import patch

from click.testing import CliRunner


@pytest.fixture
def saved_novel(settings, sample_document):
    """Persist the sample document with one done chapter; return its id."""
    from models.database import Database
    ch = replace(sample_document.get_chapter(1), content="Mara lit the lamp.", is_done=True)
    return Database(settings.sqlite_db_path).save_novel(sample_document.with_chapter(ch))


@pytest.fixture
def run_cli(settings):
    from cli.main import cli
    runner = CliRunner()

    def invoke(*args, **kwargs):
        with patch("cli.main.get_settings", return_value=settings), \
                patch("cli.main.setup_logging"):
            return runner.invoke(cli, list(args), **kwargs)

    return invoke


class TestParseChapterNumbers:
    def test_single(self):
        from cli.main import _parse_chapter_numbers
        assert _parse_chapter_numbers("3") == [3]

    def test_range(self):
        from cli.main import _parse_chapter_numbers
        assert _parse_chapter_numbers("1-3") == [1, 2, 3]

    def test_comma_list_sorted_unique(self):
        from cli.main import _parse_chapter_numbers
        assert _parse_chapter_numbers("5,1,5") == [1, 5]

    def test_invalid_exits(self):
        from cli.main import _parse_chapter_numbers
        with pytest.raises(SystemExit):
            _parse_chapter_numbers("abc")

    def test_reversed_range_exits(self):
        from cli.main import _parse_chapter_numbers
        with pytest.raises(SystemExit):
            _parse_chapter_numbers("5-1")


class TestStatusCommand:
    def test_empty_library(self, run_cli):
        result = run_cli("status")
        assert result.exit_code == 0
        assert "No novels yet" in result.output

    def test_lists_novels(self, run_cli, saved_novel):
        result = run_cli("status")
        assert result.exit_code == 0
        assert "The Salt Lighthouse" in result.output

    def test_one_novel(self, run_cli, saved_novel):
        result = run_cli("status", "-n", str(saved_novel))
        assert result.exit_code == 0
        assert "The Keeper" in result.output
        assert "Mara" in result.output

    def test_unknown_novel(self, run_cli):
        result = run_cli("status", "-n", "99")
        assert result.exit_code == 1
        assert "No novel with ID 99" in result.output


class TestShowCommand:
    def test_prints_prose(self, run_cli, saved_novel):
        result = run_cli("show", "-n", str(saved_novel), "-c", "1")
        assert result.exit_code == 0
        assert "Mara lit the lamp." in result.output

    def test_outline_flag(self, run_cli, saved_novel):
        result = run_cli("show", "-n", str(saved_novel), "-c", "2", "--outline")
        assert "The sea speaks." in result.output

    def test_missing_chapter(self, run_cli, saved_novel):
        result = run_cli("show", "-n", str(saved_novel), "-c", "9")
        assert result.exit_code == 1


class TestExportCommand:
    def test_writes_manuscript(self, run_cli, saved_novel, tmp_path):
        target = tmp_path / "book.txt"
        result = run_cli("export", "-n", str(saved_novel), "-o", str(target))
        assert result.exit_code == 0
        text = target.read_text(encoding="utf-8")
        assert text.startswith("Title: The Salt Lighthouse")
        assert "Chapter 1 The Keeper\n\nMara lit the lamp." in text


class TestDeleteCommand:
    def test_force_delete(self, run_cli, saved_novel, settings):
        from models.database import Database
        result = run_cli("delete", "-n", str(saved_novel), "--force")
        assert result.exit_code == 0
        assert Database(settings.sqlite_db_path).load_novel(saved_novel) is None

    def test_declined_confirmation_keeps_novel(self, run_cli, saved_novel, settings):
        from models.database import Database
        result = run_cli("delete", "-n", str(saved_novel), input="n\n")
        assert "Cancelled" in result.output
        assert Database(settings.sqlite_db_path).load_novel(saved_novel) is not None


class TestWriteCommand:
    def test_chapter_outside_outline(self, run_cli, saved_novel):
        result = run_cli("write", "-n", str(saved_novel), "-c", "7")
        assert result.exit_code == 1
        assert "not in the outline" in result.output

    def test_auto_with_nothing_pending(self, run_cli, settings, sample_document):
        from models.database import Database
        doc = sample_document
        for chapter_id in (1, 2, 3):
            doc = doc.with_chapter(replace(doc.get_chapter(chapter_id), content="x", is_done=True))
        novel_id = Database(settings.sqlite_db_path).save_novel(doc)

        result = run_cli("auto", "-n", str(novel_id))

        assert result.exit_code == 0
        assert "already done" in result.output


class TestRemoveChapterCommand:
    def test_force_remove_keeps_other_numbers(self, run_cli, saved_novel, settings):
        from models.database import Database
        result = run_cli("remove-chapter", "-n", str(saved_novel), "-c", "2", "--force")
        assert result.exit_code == 0
        assert "2 chapters remain" in result.output
        doc = Database(settings.sqlite_db_path).load_novel(saved_novel)
        assert [c.id for c in doc.chapters] == [1, 3]

    def test_declined_confirmation_keeps_chapter(self, run_cli, saved_novel, settings):
        from models.database import Database
        result = run_cli("remove-chapter", "-n", str(saved_novel), "-c", "2", input="n\n")
        assert "Cancelled" in result.output
        assert len(Database(settings.sqlite_db_path).load_novel(saved_novel).chapters) == 3

    def test_missing_chapter(self, run_cli, saved_novel):
        result = run_cli("remove-chapter", "-n", str(saved_novel), "-c", "9", "--force")
        assert result.exit_code == 1
        assert "Chapter 9 not found" in result.output


class TestReviewCommands:
    def test_continue_requires_prose(self, run_cli, saved_novel):
        result = run_cli("continue", "-n", str(saved_novel), "-c", "2")
        assert result.exit_code == 1
        assert "has no content to continue" in result.output

    def test_grammar_requires_prose(self, run_cli, saved_novel):
        result = run_cli("grammar", "-n", str(saved_novel), "-c", "2")
        assert result.exit_code == 1
        assert "Chapter 2 has no content" in result.output

    def test_coherence_requires_outline(self, run_cli, settings):
        from models.database import Database
        from models.novel import NovelDocument, NovelSettings
        novel_id = Database(settings.sqlite_db_path).save_novel(
            NovelDocument(settings=NovelSettings(title="Empty")),
        )
        result = run_cli("coherence", "-n", str(novel_id))
        assert result.exit_code == 1
        assert "Plan an outline" in result.output
