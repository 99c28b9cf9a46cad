# ruff: noqa: PLW0603
"""Multi-pattern sensitive word matcher.

A trie keyed by case-folded code points. Matching walks the trie from every
start offset and keeps the longest word ending on that path; ``find_all``
then resumes after the match, so reported spans never overlap.

Case folding maps each code point to its lower-case form only when that form
is a single code point, which keeps offsets into the folded text identical to
offsets into the original text.

Readers never lock. Writers serialize on a lock and publish a word by setting
the terminal node's entry last; ``reload`` builds a fresh trie and swaps the
root reference in one assignment.
"""

import threading
from collections.abc import Iterable

import structlog

from .models import (
    DEFAULT_SENSITIVE_WORDS,
    MatchResult,
    SensitiveWord,
    WordAction,
    WordEntry,
    WordLevel,
)


logger = structlog.get_logger(__name__)


class _Node:
    __slots__ = ("children", "entry")

    def __init__(self) -> None:
        self.children: dict[str, _Node] = {}
        self.entry: WordEntry | None = None


def fold(text: str) -> str:
    """Lower-case ``text`` one code point at a time, preserving length."""
    out = []
    for ch in text:
        low = ch.lower()
        out.append(low if len(low) == 1 else ch)
    return "".join(out)


def _insert(root: _Node, entry: WordEntry) -> None:
    node = root
    for ch in entry.word:
        child = node.children.get(ch)
        if child is None:
            child = _Node()
            node.children[ch] = child
        node = child
    node.entry = entry


def _build(words: Iterable[SensitiveWord]) -> tuple[_Node, dict[str, WordEntry]]:
    root = _Node()
    index: dict[str, WordEntry] = {}
    for word in words:
        if not word.enabled:
            continue
        entry = _entry_for(word.word, word.level, word.action, word.replacement)
        if entry is None:
            continue
        _insert(root, entry)
        index[entry.word] = entry
    return root, index


def _entry_for(
    word: str, level: int, action: int, replacement: str
) -> WordEntry | None:
    folded = fold(word.strip())
    if not folded:
        return None
    return WordEntry(
        word=folded,
        level=int(level),
        action=int(action),
        replacement=replacement or "",
    )


class WordMatcher:
    """Sensitive word automaton.

    Safe for any number of concurrent readers; ``add_word``, ``remove_word``
    and ``reload`` are serialized against each other.
    """

    def __init__(self, words: Iterable[SensitiveWord] | None = None) -> None:
        self._write_lock = threading.Lock()
        self._root, self._index = _build(words or ())

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, word: str) -> bool:
        return fold(word.strip()) in self._index

    def words(self) -> list[WordEntry]:
        """Snapshot of the registered words."""
        return sorted(self._index.values(), key=lambda e: e.word)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_word(
        self,
        word: str,
        level: int = WordLevel.NORMAL,
        action: int = WordAction.REPLACE,
        replacement: str = "",
    ) -> None:
        """Register ``word``; re-adding overwrites level, action and replacement."""
        entry = _entry_for(word, level, action, replacement)
        if entry is None:
            return
        with self._write_lock:
            _insert(self._root, entry)
            self._index = {**self._index, entry.word: entry}

    def add_words(self, words: Iterable[SensitiveWord]) -> None:
        for word in words:
            if word.enabled:
                self.add_word(word.word, word.level, word.action, word.replacement)

    def remove_word(self, word: str) -> bool:
        """Unregister ``word``. Returns False if it was not registered."""
        key = fold(word.strip())
        with self._write_lock:
            if key not in self._index:
                return False
            node = self._root
            for ch in key:
                node = node.children[ch]
            node.entry = None
            index = dict(self._index)
            del index[key]
            self._index = index
            return True

    def reload(self, words: Iterable[SensitiveWord]) -> None:
        """Replace the whole word list."""
        root, index = _build(words)
        with self._write_lock:
            self._root = root
            self._index = index
        logger.info("word_matcher_reloaded", words=len(index))

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    @staticmethod
    def _longest_at(
        root: _Node, folded: str, start: int
    ) -> tuple[int, WordEntry | None]:
        node = root
        best_end = -1
        best: WordEntry | None = None
        for j in range(start, len(folded)):
            node = node.children.get(folded[j])
            if node is None:
                break
            if node.entry is not None:
                best_end = j + 1
                best = node.entry
        return best_end, best

    def contains(self, text: str) -> bool:
        """True iff any registered word occurs in ``text``."""
        if not text:
            return False
        root = self._root
        folded = fold(text)
        return any(
            self._longest_at(root, folded, i)[1] is not None
            for i in range(len(folded))
        )

    def find_all(self, text: str) -> list[MatchResult]:
        """All non-overlapping matches, longest per start offset."""
        if not text:
            return []
        root = self._root
        folded = fold(text)
        results: list[MatchResult] = []
        i = 0
        while i < len(folded):
            end, entry = self._longest_at(root, folded, i)
            if entry is None:
                i += 1
                continue
            results.append(
                MatchResult(
                    word=entry.word,
                    start=i,
                    end=end,
                    level=entry.level,
                    action=entry.action,
                    replacement=entry.replacement,
                )
            )
            i = end
        return results

    def replace(self, text: str, fill_char: str = "*") -> str:
        """Mask replace-action words, keeping the rest of ``text`` untouched.

        A word with replacement text is overwritten by it, padded with ``*``
        or truncated to the matched span; otherwise the span is filled with
        ``fill_char``.
        """
        matches = [m for m in self.find_all(text) if m.action == WordAction.REPLACE]
        if not matches:
            return text
        chars = list(text)
        for match in matches:
            span = match.end - match.start
            if match.replacement:
                fill = (match.replacement + "*" * span)[:span]
            else:
                fill = (fill_char or "*")[0] * span
            chars[match.start : match.end] = fill
        return "".join(chars)

    def validate(self, text: str) -> tuple[bool, list[str]]:
        """Return ``(ok, blocked)``; ``ok`` is False iff a block-action word matches.

        ``blocked`` holds the offending words as they appear in ``text``.
        """
        blocked = [
            text[m.start : m.end]
            for m in self.find_all(text)
            if m.action == WordAction.BLOCK
        ]
        return not blocked, blocked

    def get_highest_risk_level(self, text: str) -> int:
        """Maximum level across all matches, 0 when nothing matches."""
        return max((m.level for m in self.find_all(text)), default=0)


# ==============================================================================
# Process-wide default matcher
# ==============================================================================

_default_matcher: WordMatcher | None = None
_default_lock = threading.Lock()


def get_default_matcher() -> WordMatcher:
    """Get the process-wide matcher, building it with the built-in list once."""
    global _default_matcher
    matcher = _default_matcher
    if matcher is not None:
        return matcher
    with _default_lock:
        if _default_matcher is None:
            _default_matcher = WordMatcher(DEFAULT_SENSITIVE_WORDS)
            logger.info("default_word_matcher_initialized", words=len(_default_matcher))
        return _default_matcher


def init_default_matcher(
    words: Iterable[SensitiveWord] | None = None,
    include_defaults: bool = True,
) -> WordMatcher:
    """Build the process-wide matcher explicitly, replacing any previous one."""
    global _default_matcher
    seed: list[SensitiveWord] = []
    if include_defaults:
        seed.extend(DEFAULT_SENSITIVE_WORDS)
    seed.extend(words or ())
    with _default_lock:
        _default_matcher = WordMatcher(seed)
    logger.info("default_word_matcher_initialized", words=len(_default_matcher))
    return _default_matcher


def reload_default_matcher(
    words: Iterable[SensitiveWord],
    include_defaults: bool = True,
) -> WordMatcher:
    """Reload the process-wide matcher in place.

    Holders of the instance see the new word list on their next call.
    """
    seed: list[SensitiveWord] = []
    if include_defaults:
        seed.extend(DEFAULT_SENSITIVE_WORDS)
    seed.extend(words)
    matcher = get_default_matcher()
    matcher.reload(seed)
    return matcher


def set_default_matcher(matcher: WordMatcher | None) -> None:
    """Set (or clear) the process-wide matcher."""
    global _default_matcher
    with _default_lock:
        _default_matcher = matcher
