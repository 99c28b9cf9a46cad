"""Tests for the sensitive word matcher."""

import pytest

from comment_engine.moderation.matcher import (
    WordMatcher,
    fold,
    get_default_matcher,
    init_default_matcher,
    reload_default_matcher,
    set_default_matcher,
)
from comment_engine.moderation.models import SensitiveWord, WordAction, WordLevel


@pytest.fixture
def word_matcher() -> WordMatcher:
    return WordMatcher(
        [
            SensitiveWord("spam", WordLevel.SERIOUS, WordAction.BLOCK),
            SensitiveWord("xx", WordLevel.VERY_SERIOUS, WordAction.REPLACE, "**"),
        ]
    )


class TestValidate:
    """Tests for block-action detection."""

    def test_block_word_fails_validation(self, word_matcher: WordMatcher):
        """A block-action word makes the text invalid."""
        ok, blocked = word_matcher.validate("this is spam content")

        assert ok is False
        assert blocked == ["spam"]

    def test_blocked_words_keep_original_case(self, word_matcher: WordMatcher):
        ok, blocked = word_matcher.validate("SPAM and Spam")

        assert ok is False
        assert blocked == ["SPAM", "Spam"]

    def test_replace_words_do_not_block(self, word_matcher: WordMatcher):
        ok, blocked = word_matcher.validate("axxb")

        assert ok is True
        assert blocked == []


class TestReplace:
    """Tests for masking."""

    def test_replacement_text_fills_span(self, word_matcher: WordMatcher):
        assert word_matcher.replace("axxb") == "a**b"

    def test_fill_char_used_without_replacement(self):
        matcher = WordMatcher([SensitiveWord("bad", action=WordAction.REPLACE)])

        assert matcher.replace("so bad!") == "so ***!"
        assert matcher.replace("so bad!", fill_char="#") == "so ###!"

    def test_replacement_padded_to_span(self):
        matcher = WordMatcher([SensitiveWord("abcd", replacement="x")])

        assert matcher.replace("abcd") == "x***"

    def test_block_words_left_untouched(self, word_matcher: WordMatcher):
        assert word_matcher.replace("spam xx") == "spam **"

    def test_text_without_matches_is_unchanged(self, word_matcher: WordMatcher):
        text = "nothing to see here"

        assert word_matcher.replace(text) == text

    def test_multibyte_offsets(self):
        matcher = WordMatcher([SensitiveWord("垃圾", replacement="**")])

        assert matcher.replace("这是垃圾评论") == "这是**评论"


class TestFindAll:
    """Tests for scanning."""

    def test_empty_text(self, word_matcher: WordMatcher):
        assert word_matcher.contains("") is False
        assert word_matcher.find_all("") == []
        assert word_matcher.get_highest_risk_level("") == 0

    def test_case_insensitive(self, word_matcher: WordMatcher):
        assert word_matcher.contains("SpAm") is True

    def test_longest_match_wins(self):
        matcher = WordMatcher(
            [
                SensitiveWord("ab", level=WordLevel.NORMAL),
                SensitiveWord("abc", level=WordLevel.SERIOUS),
            ]
        )

        matches = matcher.find_all("xabcx")

        assert len(matches) == 1
        assert matches[0].word == "abc"
        assert (matches[0].start, matches[0].end) == (1, 4)

    def test_matches_do_not_overlap(self):
        matcher = WordMatcher([SensitiveWord("aa")])

        matches = matcher.find_all("aaaa")

        assert [(m.start, m.end) for m in matches] == [(0, 2), (2, 4)]

    def test_highest_risk_level(self, word_matcher: WordMatcher):
        assert word_matcher.get_highest_risk_level("spam xx") == WordLevel.VERY_SERIOUS
        assert word_matcher.get_highest_risk_level("clean") == 0

    def test_fold_preserves_length(self):
        text = "İstanbul ABC"

        assert len(fold(text)) == len(text)


class TestMutation:
    """Tests for add, remove and reload."""

    def test_add_word_is_visible_immediately(self, word_matcher: WordMatcher):
        word_matcher.add_word("NEW", WordLevel.NORMAL, WordAction.REVIEW)

        assert "new" in word_matcher
        assert word_matcher.contains("brand new thing") is True

    def test_re_adding_overwrites_entry(self, word_matcher: WordMatcher):
        word_matcher.add_word("spam", WordLevel.NORMAL, WordAction.REPLACE, "####")

        assert word_matcher.validate("spam")[0] is True
        assert word_matcher.replace("spam") == "####"
        assert len(word_matcher) == 2

    def test_blank_word_ignored(self, word_matcher: WordMatcher):
        word_matcher.add_word("   ")

        assert len(word_matcher) == 2

    def test_remove_word(self, word_matcher: WordMatcher):
        assert word_matcher.remove_word("SPAM") is True
        assert word_matcher.contains("spam") is False
        assert word_matcher.remove_word("spam") is False

    def test_remove_keeps_longer_words(self):
        matcher = WordMatcher([SensitiveWord("ab"), SensitiveWord("abc")])

        matcher.remove_word("ab")

        assert [m.word for m in matcher.find_all("ab abc")] == ["abc"]

    def test_reload_replaces_word_list(self, word_matcher: WordMatcher):
        word_matcher.reload([SensitiveWord("other")])

        assert word_matcher.contains("spam") is False
        assert word_matcher.contains("another") is True
        assert len(word_matcher) == 1

    def test_disabled_words_are_skipped(self):
        matcher = WordMatcher([SensitiveWord("off", enabled=False)])

        assert len(matcher) == 0
        assert matcher.contains("off") is False


class TestDefaultMatcher:
    """Tests for the process-wide matcher."""

    def teardown_method(self):
        set_default_matcher(None)

    def test_lazily_built_with_defaults(self):
        set_default_matcher(None)

        matcher = get_default_matcher()

        assert matcher is get_default_matcher()
        assert "加微信" in matcher

    def test_init_without_defaults(self):
        matcher = init_default_matcher(
            [SensitiveWord("custom")], include_defaults=False
        )

        assert len(matcher) == 1
        assert get_default_matcher() is matcher

    def test_reload_keeps_instance(self):
        matcher = init_default_matcher(include_defaults=False)

        reloaded = reload_default_matcher(
            [SensitiveWord("fresh")], include_defaults=False
        )

        assert reloaded is matcher
        assert matcher.contains("fresh") is True
