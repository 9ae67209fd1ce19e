"""Tests for locale-aware text utility functions."""

import pytest


class TestIsCjkDominant:
    def test_empty_string(self):
        from tools.text_utils import is_cjk_dominant
        assert is_cjk_dominant("") is False

    def test_pure_chinese(self):
        from tools.text_utils import is_cjk_dominant
        assert is_cjk_dominant("海上的灯塔") is True

    def test_english(self):
        from tools.text_utils import is_cjk_dominant
        assert is_cjk_dominant("The lighthouse keeper") is False

    def test_exactly_half_is_not_dominant(self):
        from tools.text_utils import is_cjk_dominant
        assert is_cjk_dominant("ab你好") is False


class TestCountWords:
    def test_empty_string(self):
        from tools.text_utils import count_words
        assert count_words("") == 0

    def test_english_counts_tokens(self):
        from tools.text_utils import count_words
        assert count_words("The sea  spoke\nat night.") == 5

    def test_chinese_counts_characters(self):
        from tools.text_utils import count_words
        assert count_words("你好 世界") == 4

    def test_chinese_punctuation_counted(self):
        from tools.text_utils import count_words
        assert count_words("你好。世界！") == 6

    def test_mostly_chinese_with_latin_name(self):
        from tools.text_utils import count_words
        # 8 non-ASCII characters vs 4 ASCII letters: CJK rule applies
        assert count_words("玛拉站在灯塔下面Mara") == 12

    def test_only_whitespace(self):
        from tools.text_utils import count_words
        assert count_words("   \n\t ") == 0


class TestProgressPercent:
    def test_half_way(self):
        from tools.text_utils import progress_percent
        assert progress_percent(1500, 3000) == 50

    def test_capped_at_100(self):
        from tools.text_utils import progress_percent
        assert progress_percent(4000, 3000) == 100

    def test_rounded(self):
        from tools.text_utils import progress_percent
        assert progress_percent(1, 3) == 33

    def test_zero_target(self):
        from tools.text_utils import progress_percent
        assert progress_percent(100, 0) == 0


class TestCountTotalChars:
    def test_whitespace_excluded(self):
        from tools.text_utils import count_total_chars
        assert count_total_chars("hello world") == 10

    def test_chinese_counted(self):
        from tools.text_utils import count_total_chars
        assert count_total_chars("你好 世界") == 4

    def test_empty_string(self):
        from tools.text_utils import count_total_chars
        assert count_total_chars("") == 0


class TestGetChapterEnding:
    def test_short_text_returns_all(self):
        from tools.text_utils import get_chapter_ending
        assert get_chapter_ending("short", char_limit=500) == "short"

    def test_long_text_returns_tail(self):
        from tools.text_utils import get_chapter_ending
        text = "a" * 100 + "END"
        assert get_chapter_ending(text, char_limit=3) == "END"

    def test_empty(self):
        from tools.text_utils import get_chapter_ending
        assert get_chapter_ending("") == ""
