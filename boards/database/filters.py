"""
Filter model for the changelog page.

A FilterSpec is turned into an ordered list of predicate groups. Each group
renders either to a SQLAlchemy clause (for execution) or to a text fragment
with named bind parameters (for description and logging). The first group is
introduced with WHERE and every later group is conjoined with AND.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import or_

from boards.config import Config
from boards.database.models import Changelog, Chapter
from boards.utils.exceptions import FilterResolutionError


class Mode(Enum):
    SINGLE_PLAYER = "sp"
    COOP = "coop"
    EITHER = "either"


class Op(Enum):
    EQ = "="
    GT = ">"
    LT = "<"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"


# Qualified column names used in predicate descriptors
COLUMNS = {
    "chapter.is_multiplayer": Chapter.is_multiplayer,
    "cl.id": Changelog.id,
    "cl.demo_id": Changelog.demo_id,
    "cl.youtube_id": Changelog.youtube_id,
    "cl.post_rank": Changelog.post_rank,
    "cl.map_id": Changelog.map_id,
    "cl.profile_number": Changelog.profile_number,
}


def _bind_name(column: str, params: Dict[str, Any]) -> str:
    base = column.split(".")[-1]
    index = 0
    while f"{base}_{index}" in params:
        index += 1
    return f"{base}_{index}"


@dataclass(frozen=True)
class Predicate:
    """A single comparison against one changelog column."""
    column: str
    op: Op
    value: Any = None

    def __post_init__(self):
        if self.column not in COLUMNS:
            raise ValueError(f"Unknown filter column '{self.column}'")

    def to_clause(self):
        column = COLUMNS[self.column]
        if self.op is Op.IS_NULL:
            return column.is_(None)
        if self.op is Op.IS_NOT_NULL:
            return column.is_not(None)
        if self.op is Op.GT:
            return column > self.value
        if self.op is Op.LT:
            return column < self.value
        return column == self.value

    def render(self, params: Dict[str, Any]) -> str:
        if self.op in (Op.IS_NULL, Op.IS_NOT_NULL):
            return f"{self.column} {self.op.value}"
        name = _bind_name(self.column, params)
        params[name] = self.value
        return f"{self.column} {self.op.value} :{name}"


@dataclass(frozen=True)
class AnyOf:
    """Disjunction of predicates, rendered as one parenthesized group."""
    predicates: Tuple[Predicate, ...]

    def __post_init__(self):
        if not self.predicates:
            raise ValueError("AnyOf requires at least one predicate")

    def to_clause(self):
        return or_(*(predicate.to_clause() for predicate in self.predicates))

    def render(self, params: Dict[str, Any]) -> str:
        return "(" + " OR ".join(predicate.render(params) for predicate in self.predicates) + ")"


PredicateGroup = Union[Predicate, AnyOf]


_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def _parse_bool(name: str, value: Any) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if not text:
        return None
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for '{name}': {value!r}")


def _parse_int(name: str, value: Any) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid integer for '{name}': {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid integer for '{name}': {value!r}")


def _parse_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class FilterSpec:
    """Optional filters for the changelog page. All fields default to no constraint."""
    sp: Optional[bool] = None
    coop: Optional[bool] = None
    has_demo: Optional[bool] = None
    has_video: Optional[bool] = None
    first_place_only: Optional[bool] = None
    map_id: Optional[str] = None
    user_id: Optional[str] = None
    nickname: Optional[str] = None
    cursor_after: Optional[int] = None
    cursor_before: Optional[int] = None
    limit: Optional[int] = None

    # Public query parameter name -> field name
    PARAM_NAMES = {
        "sp": "sp",
        "coop": "coop",
        "has_demo": "has_demo",
        "yt": "has_video",
        "wr_gain": "first_place_only",
        "chamber": "map_id",
        "profile_number": "user_id",
        "nick_name": "nickname",
        "first": "cursor_after",
        "last": "cursor_before",
        "limit": "limit",
    }

    def __post_init__(self):
        # Frozen, so normalized values go through object.__setattr__
        for name in ("map_id", "user_id", "nickname"):
            object.__setattr__(self, name, _parse_str(getattr(self, name)))
        for name in ("cursor_after", "cursor_before", "limit"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.limit is not None and self.limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {self.limit}")

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "FilterSpec":
        """Build a FilterSpec from query parameters given as strings or native values."""
        bool_fields = {"sp", "coop", "has_demo", "has_video", "first_place_only"}
        int_fields = {"cursor_after", "cursor_before", "limit"}
        values = {}
        for param, field_name in cls.PARAM_NAMES.items():
            if param not in params:
                continue
            raw = params[param]
            if field_name in bool_fields:
                values[field_name] = _parse_bool(param, raw)
            elif field_name in int_fields:
                values[field_name] = _parse_int(param, raw)
            else:
                values[field_name] = raw
        return cls(**values)

    @property
    def mode(self) -> Mode:
        # Both flags false is contradictory and falls back to no constraint
        if self.coop is False and self.sp is not False:
            return Mode.SINGLE_PLAYER
        if self.sp is False and self.coop is not False:
            return Mode.COOP
        return Mode.EITHER

    @property
    def effective_limit(self) -> int:
        return self.limit if self.limit is not None else Config.CHANGELOG_DEFAULT_LIMIT

    @property
    def needs_user_lookup(self) -> bool:
        return self.user_id is None and bool(self.nickname)

    @property
    def has_cursor_conflict(self) -> bool:
        return self.cursor_after is not None and self.cursor_before is not None

    def to_params(self) -> Dict[str, Any]:
        """Inverse of from_params, omitting unset fields."""
        names = {field_name: param for param, field_name in self.PARAM_NAMES.items()}
        return {
            names[f.name]: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


def _presence(column: str, present: bool) -> Predicate:
    return Predicate(column, Op.IS_NOT_NULL if present else Op.IS_NULL)


def compose_predicates(spec: FilterSpec, user_ids: Optional[Sequence[str]] = None) -> List[PredicateGroup]:
    """
    Build the ordered predicate groups for a FilterSpec.

    Args:
        spec: Requested filters
        user_ids: Candidates resolved from spec.nickname, required when the
            spec filters by nickname and has no user_id

    Returns:
        Predicate groups in a stable order: mode, demo, video, first place,
        map, user, cursor

    Raises:
        FilterResolutionError: The nickname resolved to no users
    """
    predicates: List[PredicateGroup] = []

    mode = spec.mode
    if mode is Mode.SINGLE_PLAYER:
        predicates.append(Predicate("chapter.is_multiplayer", Op.EQ, False))
    elif mode is Mode.COOP:
        predicates.append(Predicate("chapter.is_multiplayer", Op.EQ, True))

    if spec.has_demo is not None:
        predicates.append(_presence("cl.demo_id", spec.has_demo))
    if spec.has_video is not None:
        predicates.append(_presence("cl.youtube_id", spec.has_video))
    if spec.first_place_only:
        predicates.append(Predicate("cl.post_rank", Op.EQ, 1))

    if spec.map_id is not None:
        predicates.append(Predicate("cl.map_id", Op.EQ, spec.map_id))

    if spec.user_id is not None:
        predicates.append(Predicate("cl.profile_number", Op.EQ, spec.user_id))
    elif spec.nickname:
        if user_ids is None:
            raise ValueError("Nickname filters need the resolved user ids")
        if not user_ids:
            raise FilterResolutionError(spec.nickname)
        candidates = tuple(Predicate("cl.profile_number", Op.EQ, user_id) for user_id in user_ids)
        predicates.append(candidates[0] if len(candidates) == 1 else AnyOf(candidates))

    # cursor_after wins over cursor_before
    if spec.cursor_after is not None:
        predicates.append(Predicate("cl.id", Op.GT, spec.cursor_after))
    elif spec.cursor_before is not None:
        predicates.append(Predicate("cl.id", Op.LT, spec.cursor_before))

    return predicates


def fold_predicates(fragments: Iterable[str], leading: str = "WHERE", conjunction: str = "AND") -> str:
    """Join rendered predicate fragments: the first takes `leading`, the rest `conjunction`."""
    clauses = []
    for i, fragment in enumerate(fragments):
        keyword = leading if i == 0 else conjunction
        clauses.append(f"{keyword} {fragment}")
    return "\n".join(clauses)
