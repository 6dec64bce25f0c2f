"""Resolve user supplied short names against known entries.

A query matches an entry when any of these holds (separators are
normalized to ``/`` on both sides):

1. the full name equals the query
2. the target path equals the query
3. the last segment of the full name equals the query
4. the full name ends with ``/<query>``
5. the target path ends with ``/<query>``

All candidates are returned; disambiguation is left to the caller through
:class:`MatchResult`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, Iterable, Optional, TypeVar

from .exceptions import AmbiguousMatchError, NotFoundError
from .utils import normalize_separators

T = TypeVar("T")


class MatchOutcome(str, Enum):
    NONE = "none"
    UNIQUE = "unique"
    AMBIGUOUS = "ambiguous"


@dataclass
class MatchResult(Generic[T]):
    """Tagged result of a name lookup."""

    query: str
    candidates: list[T] = field(default_factory=list)

    @property
    def outcome(self) -> MatchOutcome:
        if not self.candidates:
            return MatchOutcome.NONE
        if len(self.candidates) == 1:
            return MatchOutcome.UNIQUE
        return MatchOutcome.AMBIGUOUS

    @property
    def is_unique(self) -> bool:
        return self.outcome is MatchOutcome.UNIQUE

    @property
    def is_ambiguous(self) -> bool:
        return self.outcome is MatchOutcome.AMBIGUOUS

    def require_unique(
        self, not_found: Optional[Callable[[str], Exception]] = None
    ) -> T:
        """Return the single candidate.

        Args:
            not_found: Factory for the exception raised when nothing matched.
                       Defaults to a generic NotFoundError.

        Raises:
            NotFoundError: No candidate matched
            AmbiguousMatchError: More than one candidate matched
        """
        if self.outcome is MatchOutcome.NONE:
            if not_found is not None:
                raise not_found(self.query)
            raise NotFoundError(f"No entry matches: {self.query}")
        if self.outcome is MatchOutcome.AMBIGUOUS:
            raise AmbiguousMatchError(self.query, self.candidates)
        return self.candidates[0]


def matches_query(name: str, target_path: Optional[str], query: str) -> bool:
    """Check a single (name, target path) pair against a query.

    Examples:
        >>> matches_query("github.com/facebook/react", None, "react")
        True
        >>> matches_query("github.com/facebook/react", None, "facebook/react")
        True
        >>> matches_query("github.com/facebook/react", None, "act")
        False
        >>> matches_query("github.com/a/b", "vendor/lib", "lib")
        True
    """
    query = normalize_separators(query).strip()
    if not query:
        return False
    name = normalize_separators(name)

    if name == query:
        return True
    if name.rsplit("/", 1)[-1] == query:
        return True
    if name.endswith("/" + query):
        return True

    if target_path:
        target = normalize_separators(target_path).rstrip("/")
        if target == query.rstrip("/"):
            return True
        if target.endswith("/" + query.rstrip("/")):
            return True
    return False


def match_entries(
    entries: Iterable[T],
    query: str,
    name_of: Callable[[T], str],
    target_of: Optional[Callable[[T], Optional[str]]] = None,
) -> MatchResult[T]:
    """Find all entries matching a query.

    Args:
        entries: Candidate entries, in the order they should be reported
        query: User supplied name, short name or path
        name_of: Returns the canonical full name of an entry
        target_of: Returns the target path of an entry, if entries have one

    Returns:
        MatchResult holding every matching entry
    """
    candidates = [
        entry
        for entry in entries
        if matches_query(
            name_of(entry), target_of(entry) if target_of else None, query
        )
    ]
    return MatchResult(query=query, candidates=candidates)
