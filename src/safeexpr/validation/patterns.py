"""Pattern-safety checker for regular-expression arguments.

Expression authors pass patterns to ``match``, ``search``, ``replace`` and
``split``. Backtracking engines can take exponential time on a quantified
group that itself contains a quantifier or an alternation, so the checker
accepts a small subset of regular-expression syntax whose matching time
stays bounded:

    literals, ".", "^", "$", "\\b"
    alternation "a|b" (empty branches allowed)
    character classes "[...]", "[^...]" with ranges and escapes
    escapes \\d \\w \\s \\D \\W \\S \\t \\n \\r \\b and escaped specials
    quantifiers + * ? {n} {n,} {n,m}, each optionally lazy
    non-capturing groups "(?:...)"

A "{" that does not start a valid quantifier is a literal brace.

Rejected: capturing, named and lookaround groups, backreferences, any other
escape, a quantified anchor and a leading quantifier. A quantifier may not be
applied to a group whose body contains a quantifier or an alternation at any
depth: "(?:a+)+" and "(?:a|aa)+" both have exponentially many ways to match
the same text.

Accepted patterns are translated to an equivalent Python regular expression
(ASCII classes, "$" only at end of input, "." excluding line terminators)
and compiled once; results are memoized per pattern text.

Python 3.13+. Zero external dependencies.
"""

import functools
import logging
import re
from dataclasses import dataclass
from typing import NoReturn

from safeexpr.constants import MAX_DEPTH
from safeexpr.diagnostics import ErrorCategory, ErrorTemplate, ExprValidationError

__all__ = ["PATTERN_METHODS", "SafePattern", "validate_pattern"]

logger = logging.getLogger(__name__)

# String methods whose first argument is a pattern.
PATTERN_METHODS: frozenset[str] = frozenset({"match", "search", "replace", "split"})

_ALLOWED_ESCAPES_TEXT = r"Allowed: \d \w \s \D \W \S \t \n \r \b"

# Escape letter -> Python translation.
_CLASS_ESCAPES: dict[str, str] = {
    "d": r"\d",
    "w": r"\w",
    "s": r"\s",
    "D": r"\D",
    "W": r"\W",
    "S": r"\S",
    "t": r"\t",
    "n": r"\n",
    "r": r"\r",
}

_ESCAPED_SPECIALS = frozenset(".\\[](){}+*?^$|-/")

_QUANTIFIER_CHARS = frozenset("*+?")

# {n} {n,} {n,m}
_BRACE_QUANTIFIER = re.compile(r"\{(\d+)(,(\d*))?\}")

# "." never matches a line terminator.
_DOT = "[^\\n\\r\\u2028\\u2029]"


@dataclass(frozen=True, slots=True)
class SafePattern:
    """A pattern that passed the safety checker.

    Attributes:
        source: Pattern text as written by the expression author
        regex: Compiled Python translation
    """

    source: str
    regex: re.Pattern[str]


@dataclass(slots=True)
class _Atom:
    """Last element of a sequence, kept until we know whether it is quantified."""

    text: str
    is_anchor: bool = False
    contains_quantifier: bool = False
    contains_alternation: bool = False


class _PatternChecker:
    """Single-use recursive-descent checker and translator."""

    __slots__ = ("_depth", "_pattern", "_pos")

    def __init__(self, pattern: str) -> None:
        self._pattern = pattern
        self._pos = 0
        self._depth = 0

    def run(self) -> str:
        text = self._alternation().text
        if self._pos < len(self._pattern):
            # Only an unmatched ")" stops the top-level alternation early.
            self._fail('unexpected ")" without a matching "("')
        return text

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(self, reason: str, hint: str | None = None) -> NoReturn:
        raise ExprValidationError(
            ErrorTemplate.unsafe_pattern(self._pattern, reason, hint),
            category=ErrorCategory.UNSAFE_PATTERN,
        )

    def _peek(self, offset: int = 0) -> str | None:
        index = self._pos + offset
        if index < len(self._pattern):
            return self._pattern[index]
        return None

    def _brace_quantifier(self) -> re.Match[str] | None:
        return _BRACE_QUANTIFIER.match(self._pattern, self._pos)

    def _group_body(self, start: int) -> str:
        """Text between the "(" at ``start`` and its matching ")" (best effort)."""
        depth = 0
        in_class = False
        index = start
        while index < len(self._pattern):
            char = self._pattern[index]
            if char == "\\":
                index += 2
                continue
            if in_class:
                in_class = char != "]"
            elif char == "[":
                in_class = True
            elif char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return self._pattern[start + 1:index]
            index += 1
        return self._pattern[start + 1:]

    # ------------------------------------------------------------------
    # Grammar
    # ------------------------------------------------------------------

    def _alternation(self) -> _Atom:
        """Alternation body; ``text`` is the translation, flags cover every depth."""
        branches: list[str] = []
        contains_quantifier = False
        contains_alternation = False
        while True:
            branch = self._sequence()
            branches.append(branch.text)
            contains_quantifier = contains_quantifier or branch.contains_quantifier
            contains_alternation = contains_alternation or branch.contains_alternation
            if self._peek() != "|":
                return _Atom(
                    "|".join(branches),
                    contains_quantifier=contains_quantifier,
                    contains_alternation=contains_alternation or len(branches) > 1,
                )
            self._pos += 1

    def _sequence(self) -> _Atom:
        parts: list[str] = []
        previous: _Atom | None = None
        previous_start = self._pos
        contains_quantifier = False
        contains_alternation = False

        while (char := self._peek()) is not None and char not in "|)":
            brace = self._brace_quantifier() if char == "{" else None
            if char in _QUANTIFIER_CHARS or brace is not None:
                quantifier = brace.group(0) if brace is not None else char
                if previous is None:
                    self._fail(f'quantifier without preceding element "{quantifier}"')
                self._check_quantifiable(
                    previous, self._pattern[previous_start:self._pos] + quantifier
                )
                self._pos += len(quantifier)
                if self._peek() == "?":
                    quantifier += "?"
                    self._pos += 1
                parts.append(previous.text + quantifier)
                previous = None
                contains_quantifier = True
                continue

            if previous is not None:
                parts.append(previous.text)
                contains_quantifier = contains_quantifier or previous.contains_quantifier
                contains_alternation = contains_alternation or previous.contains_alternation
            previous_start = self._pos
            previous = self._atom()

        if previous is not None:
            parts.append(previous.text)
            contains_quantifier = contains_quantifier or previous.contains_quantifier
            contains_alternation = contains_alternation or previous.contains_alternation
        return _Atom(
            "".join(parts),
            contains_quantifier=contains_quantifier,
            contains_alternation=contains_alternation,
        )

    def _check_quantifiable(self, atom: _Atom, written: str) -> None:
        if atom.is_anchor:
            self._fail(
                f'quantified anchor "{written}"',
                "Anchors match a position and cannot be repeated",
            )
        if atom.contains_quantifier:
            self._fail(
                f'nested quantifier: "{written}" repeats a group that '
                "already contains a quantifier, which can cause catastrophic "
                "backtracking. Flatten the pattern or remove one quantifier"
            )
        if atom.contains_alternation:
            self._fail(
                f'quantified alternation: "{written}" repeats a group that '
                "contains an alternation, whose branches can match the same text "
                "in exponentially many ways",
                "Use a character class for single characters, e.g. [ab]+ instead of (?:a|b)+",
            )

    def _atom(self) -> _Atom:
        char = self._pattern[self._pos]
        if char == "(":
            return self._group()
        if char == "[":
            return _Atom(self._char_class())
        if char == "\\":
            return self._escape()
        self._pos += 1
        if char == ".":
            return _Atom(_DOT)
        if char == "^":
            return _Atom("^", is_anchor=True)
        if char == "$":
            return _Atom(r"\Z", is_anchor=True)
        return _Atom(re.escape(char))

    def _group(self) -> _Atom:
        start = self._pos
        if self._peek(1) is None:
            self._fail("unterminated group")
        if self._peek(1) != "?":
            body = self._group_body(start)
            self._fail(
                f"capturing groups are not allowed. Use (?:{body}) instead",
                "Non-capturing groups behave the same for match, search, replace and split",
            )
        rest = self._pattern[start + 2:start + 4]
        if rest.startswith(":"):
            self._pos = start + 3
        elif rest.startswith("="):
            self._fail("lookahead (?=...) is not allowed")
        elif rest.startswith("!"):
            self._fail("negative lookahead (?!...) is not allowed")
        elif rest == "<=":
            self._fail("lookbehind (?<=...) is not allowed")
        elif rest == "<!":
            self._fail("negative lookbehind (?<!...) is not allowed")
        elif rest.startswith("<"):
            self._fail("named groups are not allowed. Use (?:...) instead")
        else:
            self._fail(f'unknown group type "{self._pattern[start:start + 3]}"')

        self._depth += 1
        if self._depth > MAX_DEPTH:
            self._fail(f"groups nested more than {MAX_DEPTH} levels deep")
        body = self._alternation()
        self._depth -= 1
        if self._peek() != ")":
            self._fail("unterminated group")
        self._pos += 1
        return _Atom(
            f"(?:{body.text})",
            contains_quantifier=body.contains_quantifier,
            contains_alternation=body.contains_alternation,
        )

    def _escape(self) -> _Atom:
        escaped = self._peek(1)
        if escaped is None:
            self._fail("trailing backslash")
        self._pos += 2
        if escaped == "b":
            return _Atom(r"\b", is_anchor=True)
        if escaped in _CLASS_ESCAPES:
            return _Atom(_CLASS_ESCAPES[escaped])
        if escaped in _ESCAPED_SPECIALS:
            return _Atom(re.escape(escaped))
        self._reject_escape(escaped)

    def _reject_escape(self, escaped: str) -> NoReturn:
        if escaped in "123456789":
            self._fail(
                f"backreferences (\\{escaped}) are not allowed: "
                "they can cause exponential matching time"
            )
        self._fail(f'unknown escape "\\{escaped}". {_ALLOWED_ESCAPES_TEXT}')

    def _class_member(self) -> tuple[str, str | None]:
        """One class member: (translation, literal char or None for a class escape)."""
        char = self._pattern[self._pos]
        if char != "\\":
            self._pos += 1
            return re.escape(char), char
        escaped = self._peek(1)
        if escaped is None:
            self._fail("trailing backslash")
        self._pos += 2
        if escaped == "b":
            return r"\x08", "\b"
        if escaped in ("t", "n", "r"):
            literal = {"t": "\t", "n": "\n", "r": "\r"}[escaped]
            return _CLASS_ESCAPES[escaped], literal
        if escaped in _CLASS_ESCAPES:
            return _CLASS_ESCAPES[escaped], None
        if escaped in _ESCAPED_SPECIALS:
            return re.escape(escaped), escaped
        self._reject_escape(escaped)

    def _char_class(self) -> str:
        self._pos += 1
        parts: list[str] = ["["]
        if self._peek() == "^":
            parts.append("^")
            self._pos += 1
        first = True
        while True:
            char = self._peek()
            if char is None:
                self._fail("unterminated character class")
            if char == "]" and not first:
                self._pos += 1
                break
            first = False
            text, literal = self._class_member()
            if (
                literal is not None
                and self._peek() == "-"
                and self._peek(1) not in (None, "]")
            ):
                self._pos += 1
                end_text, end_literal = self._class_member()
                if end_literal is None:
                    parts.extend((text, r"\-", end_text))
                    continue
                if ord(end_literal) < ord(literal):
                    self._fail(f'character class range "{literal}-{end_literal}" is out of order')
                parts.append(f"{text}-{end_text}")
                continue
            parts.append(text)
        parts.append("]")
        return "".join(parts)


@functools.lru_cache(maxsize=512)
def validate_pattern(pattern: str) -> SafePattern:
    """Check ``pattern`` for catastrophic-backtracking risk and compile it.

    Args:
        pattern: Pattern text from a string literal

    Returns:
        SafePattern with the compiled translation

    Raises:
        ExprValidationError: (category UNSAFE_PATTERN) naming the rejected
            construct

    Example:
        >>> validate_pattern(r"\\d+").regex.search("abc123").group(0)
        '123'
        >>> validate_pattern("(?:a+)+")
        Traceback (most recent call last):
        ...
        ExprValidationError: ... nested quantifier ...
    """
    translated = _PatternChecker(pattern).run()
    try:
        regex = re.compile(translated, re.ASCII)
    except re.error as exc:
        raise ExprValidationError(
            ErrorTemplate.unsafe_pattern(pattern, f"invalid pattern ({exc})"),
            category=ErrorCategory.UNSAFE_PATTERN,
        ) from exc
    logger.debug("Compiled pattern %r as %r", pattern, translated)
    return SafePattern(source=pattern, regex=regex)
