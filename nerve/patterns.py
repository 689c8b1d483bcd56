"""
Topic pattern compiler and matcher for the message bus.

Subscription keys are separator-delimited topic names that may contain two
wildcard tokens:

    * (multi-level)   matches any run of characters, including separators. When
                      it is the final segment ('a.*') it also matches zero
                      trailing segments, so 'a.*' matches 'a', 'a.b' and 'a.b.c'.
    % (single-level)  matches a run of characters that contains no separator,
                      i.e. at most one segment's worth of content.

All three tokens are configurable through Tokens. Keys are compiled into
anchored, case-insensitive regular expressions. Literal text and the tokens
themselves are escaped before being embedded, so topic names containing regex
operator characters ('+', '(', '$', ...) match literally.
"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Tokens(object):
    """The configurable characters (or strings) used to read a key."""

    split: str = "."
    """Separates hierarchical segments."""

    wild: str = "*"
    """Multi-level wildcard."""

    wildlvl: str = "%"
    """Single-level wildcard."""

    def merged(
        self,
        split: Optional[str] = None,
        wild: Optional[str] = None,
        wildlvl: Optional[str] = None,
    ) -> "Tokens":
        """Returns a copy with every truthy argument replacing its token."""
        return Tokens(
            split=split or self.split,
            wild=wild or self.wild,
            wildlvl=wildlvl or self.wildlvl,
        )


class PatternMatcher(object):
    """
    Compiles subscription keys for one set of tokens.

    Compiled expressions are cached per key. A matcher is immutable with
    respect to its tokens; reconfiguring the bus builds a new matcher.
    """

    def __init__(self, tokens: Tokens) -> None:
        self.tokens = tokens

        # Longest token first so a token that contains the other wins.
        ordered = sorted({tokens.wild, tokens.wildlvl}, key=len, reverse=True)
        self._token_regex = re.compile(
            "(" + "|".join(re.escape(t) for t in ordered) + ")"
        )

        escaped_split = re.escape(tokens.split)
        self._one_level = f"(?:(?!{escaped_split}).)*"
        self._any_depth = f"(?:{escaped_split}.*)?"

        self._compiled: dict[str, re.Pattern] = {}
        self._segments: dict[str, re.Pattern] = {}

    def _tokenize(self, text: str) -> list[str]:
        """Split text into literal chunks and wildcard tokens, in order."""
        return [part for part in self._token_regex.split(text) if part]

    def compile(self, key: str) -> re.Pattern:
        """
        Returns the compiled full-match expression for a subscription key.

        Args:
            key (str): The subscription key, e.g. 'system.%.open' or 'system.*'.
        Returns:
            re.Pattern: Case-insensitive expression to be used with fullmatch().
        """
        pattern = self._compiled.get(key)
        if pattern is not None:
            return pattern

        split = self.tokens.split
        parts = self._tokenize(key)

        # 'a.*' must also match 'a' itself.
        trailing = False
        if (
            len(parts) >= 2
            and parts[-1] == self.tokens.wild
            and parts[-2] not in (self.tokens.wild, self.tokens.wildlvl)
            and parts[-2].endswith(split)
        ):
            trailing = True
            parts = parts[:-2] + [parts[-2][: -len(split)]]

        expression = []
        for part in parts:
            if part == self.tokens.wild:
                expression.append(".*")
            elif part == self.tokens.wildlvl:
                expression.append(self._one_level)
            else:
                expression.append(re.escape(part))

        if trailing:
            expression.append(self._any_depth)

        pattern = re.compile("".join(expression), re.IGNORECASE | re.DOTALL)
        self._compiled[key] = pattern
        return pattern

    def matches(self, key: str, message: str) -> bool:
        """
        Check if a concrete message name is matched by a subscription key.

        Args:
            key (str): The subscription key, possibly containing wildcards.
            message (str): The concrete message name that was broadcast.
        Returns:
            bool: True if the whole message matches the key.
        """
        if not isinstance(key, str) or not isinstance(message, str):
            return False

        return self.compile(key).fullmatch(message) is not None

    def _segment(self, segment: str) -> re.Pattern:
        """Both wildcard tokens expand to '.*' inside a single key segment."""
        pattern = self._segments.get(segment)
        if pattern is None:
            expression = "".join(
                ".*" if part in (self.tokens.wild, self.tokens.wildlvl)
                else re.escape(part)
                for part in self._tokenize(segment)
            )
            pattern = re.compile(expression, re.IGNORECASE | re.DOTALL)
            self._segments[segment] = pattern

        return pattern

    def can_ever_match(self, key: str, message: str) -> bool:
        """
        Check if a key could match a message sharing the hierarchical path of
        an available message name.

        Segments are compared position by position. Key segments past the end
        of the message, and message segments past the end of the key, count as
        matching, as do empty key segments. Comparison stops after the first
        key segment holding the multi-level wildcard.

        Args:
            key (str): The subscription key.
            message (str): A concrete message name that is available.
        Returns:
            bool: True if the key is eligible to be served by the message.
        """
        if not isinstance(key, str) or not isinstance(message, str):
            return False

        key_parts = key.split(self.tokens.split)
        for index, part in enumerate(message.split(self.tokens.split)):
            if index >= len(key_parts):
                return True

            segment = key_parts[index]
            if not segment:
                continue

            if self._segment(segment).fullmatch(part) is None:
                return False

            if self.tokens.wild in segment:
                return True

        return True
