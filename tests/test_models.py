"""Tests for document models and the SQLite document store."""

import pytest
from dataclasses import replace


class TestChapter:
    def test_defaults_are_pending(self):
        from models.chapter import Chapter
        ch = Chapter(id=1, title="Opening")
        assert not ch.is_done and not ch.is_generating
        assert ch.content == ""

    def test_generating_and_done_rejected(self):
        from models.chapter import Chapter
        with pytest.raises(ValueError, match="generating and done"):
            Chapter(id=1, is_generating=True, is_done=True)


class TestGrammarIssue:
    def test_from_dict(self):
        from models.chapter import GrammarIssue
        issue = GrammarIssue.from_dict({"original": " teh ", "suggestion": "the", "explanation": None})
        assert issue == GrammarIssue(original="teh", suggestion="the", explanation="")

    def test_blank_original_dropped(self):
        from models.chapter import GrammarIssue
        assert GrammarIssue.from_dict({"original": "", "suggestion": "the"}) is None
        assert GrammarIssue.from_dict({"suggestion": "the"}) is None


class TestCharacterFromDict:
    def test_plain_fields(self):
        from models.character import Character
        c = Character.from_dict({"name": "Mara", "role": "keeper", "description": "Stubborn"})
        assert c == Character(name="Mara", role="keeper", description="Stubborn")

    def test_relationship_map_flattened(self):
        from models.character import Character
        c = Character.from_dict({"name": "Mara", "relationships": {"Ivo": "brother", "Sea": "rival"}})
        assert c.relationships == "Ivo: brother; Sea: rival"

    def test_missing_fields_become_empty(self):
        from models.character import Character
        c = Character.from_dict({"name": "Mara", "role": None})
        assert c.role == ""
        assert c.description == ""


class TestUsageStats:
    def test_add_accumulates(self):
        from models.novel import UsageStats
        usage = UsageStats().add(10, 20).add(5, 5)
        assert usage == UsageStats(15, 25)

    def test_negative_ignored(self):
        from models.novel import UsageStats
        assert UsageStats(10, 10).add(-5, -5) == UsageStats(10, 10)


class TestNovelDocument:
    def test_chapters_sorted_by_id(self):
        from models.chapter import Chapter
        from models.novel import NovelDocument
        doc = NovelDocument(chapters=(Chapter(id=3), Chapter(id=1), Chapter(id=2)))
        assert [c.id for c in doc.chapters] == [1, 2, 3]

    def test_duplicate_ids_rejected(self):
        from models.chapter import Chapter
        from models.novel import NovelDocument
        with pytest.raises(ValueError, match="unique"):
            NovelDocument(chapters=(Chapter(id=1), Chapter(id=1)))

    def test_with_chapter_replaces_by_id(self, sample_document):
        ch = replace(sample_document.get_chapter(2), content="New prose")
        doc = sample_document.with_chapter(ch)
        assert doc.get_chapter(2).content == "New prose"
        assert sample_document.get_chapter(2).content == ""

    def test_get_missing_chapter(self, sample_document):
        assert sample_document.get_chapter(99) is None

    def test_pending_and_total_words(self, sample_document):
        ch = replace(sample_document.get_chapter(1), content="one two three", is_done=True)
        doc = sample_document.with_chapter(ch)
        assert [c.id for c in doc.pending_chapters()] == [2, 3]
        assert doc.total_words() == 3

    def test_title_from_settings(self, sample_document):
        assert sample_document.title == "The Salt Lighthouse"


class TestManuscript:
    def test_english_headings(self, sample_document):
        ch = replace(sample_document.get_chapter(1), content="It began.", is_done=True)
        text = sample_document.with_chapter(ch).to_manuscript()
        assert text.startswith("Title: The Salt Lighthouse\n\n")
        assert "Chapter 1 The Keeper\n\nIt began.\n" in text
        assert text.count("-" * 50) == 2

    def test_chinese_headings(self, sample_document):
        from models.enums import Language
        doc = replace(sample_document, settings=replace(sample_document.settings, language=Language.ZH))
        assert "第 2 章 The Voice" in doc.to_manuscript()


class TestDatabase:
    def test_save_assigns_lowest_free_id(self, db, sample_document):
        assert db.save_novel(sample_document) == 1
        assert db.save_novel(sample_document) == 2

    def test_round_trip(self, db, sample_document):
        from models.novel import UsageStats
        ch = replace(sample_document.get_chapter(1), content="Prose.", is_done=True,
                     consistency_analysis="Consistent")
        doc = replace(sample_document.with_chapter(ch), usage=UsageStats(100, 200),
                      current_chapter_id=1)
        novel_id = db.save_novel(doc)

        loaded = db.load_novel(novel_id)
        assert loaded.id == novel_id
        assert loaded.settings == doc.settings
        assert loaded.chapters == doc.chapters
        assert loaded.characters == doc.characters
        assert loaded.usage == UsageStats(100, 200)
        assert loaded.status == doc.status
        assert loaded.current_chapter_id == 1
        assert loaded.last_saved is not None

    def test_generating_flag_not_persisted(self, db, sample_document):
        ch = replace(sample_document.get_chapter(2), content="Half", is_generating=True)
        novel_id = db.save_novel(sample_document.with_chapter(ch))
        loaded = db.load_novel(novel_id).get_chapter(2)
        assert loaded.content == "Half"
        assert loaded.is_generating is False

    def test_save_existing_updates_in_place(self, db, sample_document):
        novel_id = db.save_novel(sample_document)
        doc = replace(sample_document, id=novel_id, chapters=sample_document.chapters[:2])
        assert db.save_novel(doc) == novel_id
        assert len(db.load_novel(novel_id).chapters) == 2
        assert len(db.list_novels()) == 1

    def test_load_missing_returns_none(self, db):
        assert db.load_novel(42) is None

    def test_list_and_delete(self, db, sample_document):
        novel_id = db.save_novel(sample_document)
        assert db.list_novels()[0]["title"] == "The Salt Lighthouse"
        db.delete_novel(novel_id)
        assert db.list_novels() == []
        assert db.load_novel(novel_id) is None

    def test_save_failure_raises_persistence_error(self, db, sample_document):
        import sqlite3
        from unittest.mock import patch
        from config.exceptions import PersistenceError
        with patch.object(db, "_get_conn", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(PersistenceError, match="disk I/O error"):
                db.save_novel(sample_document)
