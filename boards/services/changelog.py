"""
Changelog page service.

Composes the filtered changelog query from a FilterSpec and runs it as a
single paginated select, newest entries first.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from boards.services.base import BaseService
from boards.services.users import UserLookupService, DISPLAY_NAME
from boards.database.models import Changelog, Chapter, Map, User
from boards.database.filters import FilterSpec, PredicateGroup, compose_predicates, fold_predicates
from boards.utils.exceptions import StoreError

logger = logging.getLogger(__name__)

_SOURCE = (
    "SELECT cl.*, map.name AS map_name, COALESCE(u.board_name, u.steam_name) AS user_name, u.avatar\n"
    "FROM changelog AS cl\n"
    "INNER JOIN users AS u ON (u.profile_number = cl.profile_number)\n"
    "INNER JOIN maps AS map ON (map.steam_id = cl.map_id)\n"
    "INNER JOIN chapters AS chapter ON (map.chapter_id = chapter.id)"
)
_ORDER = "ORDER BY cl.timestamp DESC NULLS LAST, cl.id DESC"


@dataclass
class ChangelogPage:
    """Changelog entry joined with its map name and the submitter's display name"""
    id: int
    timestamp: Optional[datetime]
    profile_number: str
    score: int
    map_id: str
    demo_id: Optional[int]
    youtube_id: Optional[str]
    banned: bool
    verified: Optional[bool]
    pre_rank: Optional[int]
    post_rank: Optional[int]
    category_id: int
    note: Optional[str]
    map_name: str
    user_name: Optional[str]
    avatar: Optional[str] = None
    previous_id: Optional[int] = None
    coop_id: Optional[int] = None
    score_delta: Optional[int] = None
    submission: bool = False
    admin_note: Optional[str] = None

    @classmethod
    def from_row(cls, entry: Changelog, map_name: str, user_name: Optional[str], avatar: Optional[str]) -> "ChangelogPage":
        return cls(
            id=entry.id,
            timestamp=entry.timestamp,
            profile_number=entry.profile_number,
            score=entry.score,
            map_id=entry.map_id,
            demo_id=entry.demo_id,
            youtube_id=entry.youtube_id,
            banned=bool(entry.banned),
            verified=entry.verified,
            pre_rank=entry.pre_rank,
            post_rank=entry.post_rank,
            category_id=entry.category_id,
            note=entry.note,
            map_name=map_name,
            user_name=user_name,
            avatar=avatar,
            previous_id=entry.previous_id,
            coop_id=entry.coop_id,
            score_delta=entry.score_delta,
            submission=bool(entry.submission),
            admin_note=entry.admin_note,
        )


@dataclass
class ChangelogQuery:
    """Composed changelog query: ordered predicate groups plus a row limit."""
    limit: int
    predicates: List[PredicateGroup] = field(default_factory=list)

    def statement(self):
        query = (
            select(
                Changelog,
                Map.name.label("map_name"),
                DISPLAY_NAME.label("user_name"),
                User.avatar,
            )
            .select_from(Changelog)
            .join(User, User.profile_number == Changelog.profile_number)
            .join(Map, Map.steam_id == Changelog.map_id)
            .join(Chapter, Chapter.id == Map.chapter_id)
        )
        if self.predicates:
            query = query.where(*(predicate.to_clause() for predicate in self.predicates))
        return (
            query
            .order_by(Changelog.timestamp.desc().nulls_last(), Changelog.id.desc())
            .limit(self.limit)
        )

    def describe(self) -> Tuple[str, Dict[str, Any]]:
        """Backend-neutral text of the query with its bind parameters"""
        params: Dict[str, Any] = {}
        where = fold_predicates(predicate.render(params) for predicate in self.predicates)
        params["limit"] = self.limit
        parts = [_SOURCE, where, _ORDER, "LIMIT :limit"]
        return "\n".join(part for part in parts if part), params


class ChangelogService(BaseService):
    """Filtered, cursor-paginated views of the changelog."""

    def __init__(self, session_factory, user_lookup: Optional[UserLookupService] = None):
        super().__init__(session_factory)
        self.user_lookup = user_lookup or UserLookupService(session_factory)

    async def build_filtered_changelog(
        self,
        spec: FilterSpec,
        additional_filters: Optional[Sequence[PredicateGroup]] = None
    ) -> ChangelogQuery:
        """
        Compose the changelog query for a FilterSpec without running it.

        Args:
            spec: Requested filters
            additional_filters: Extra predicate groups conjoined after the built-in ones

        Returns:
            ChangelogQuery ready to execute

        Raises:
            FilterResolutionError: spec.nickname matched no users
        """
        user_ids = None
        if spec.needs_user_lookup:
            user_ids = await self.user_lookup.resolve_nickname(spec.nickname)

        if spec.has_cursor_conflict:
            logger.warning(
                f"Both cursors supplied (first={spec.cursor_after}, last={spec.cursor_before}); "
                f"ignoring 'last'"
            )

        predicates = compose_predicates(spec, user_ids)
        if additional_filters:
            predicates.extend(additional_filters)

        return ChangelogQuery(limit=spec.effective_limit, predicates=predicates)

    async def get_changelog_page(self, spec: FilterSpec) -> List[ChangelogPage]:
        """
        Get a filtered page of changelog entries, newest first with undated entries last.

        Raises:
            FilterResolutionError: spec.nickname matched no users
            StoreError: The changelog query failed
        """
        query = await self.build_filtered_changelog(spec)

        if logger.isEnabledFor(logging.DEBUG):
            query_text, params = query.describe()
            logger.debug(f"Changelog query:\n{query_text}\nparams={params}")

        try:
            async with self.get_session() as session:
                result = await session.execute(query.statement())
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error(f"Changelog page query failed: {e}")
            raise StoreError("get_changelog_page", str(e)) from e

        return [ChangelogPage.from_row(*row) for row in rows]
