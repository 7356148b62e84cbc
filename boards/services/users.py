"""
User lookup for nickname filters on the changelog page.
"""

import logging
from typing import List
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from boards.services.base import BaseService
from boards.database.models import User
from boards.utils.exceptions import FilterResolutionError, StoreError

logger = logging.getLogger(__name__)

# Board-assigned name when present, else the platform name
DISPLAY_NAME = func.coalesce(User.board_name, User.steam_name)


class UserLookupService(BaseService):
    """Resolves fuzzy nicknames to profile numbers."""
    
    async def resolve_nickname(self, pattern: str) -> List[str]:
        """
        Pattern match on a nickname against board/steam display names.
        
        Args:
            pattern: Case-insensitive substring of the display name
            
        Returns:
            Matching profile numbers, ordered by profile number
            
        Raises:
            FilterResolutionError: No user matched the pattern
            StoreError: The user query failed
        """
        query = (
            select(User.profile_number)
            .where(DISPLAY_NAME.icontains(pattern, autoescape=True))
            .order_by(User.profile_number)
        )
        try:
            async with self.get_session() as session:
                result = await session.execute(query)
                profile_numbers = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Nickname lookup failed: {e}")
            raise StoreError("resolve_nickname", str(e)) from e
        
        if not profile_numbers:
            raise FilterResolutionError(pattern)
        
        logger.debug(f"Nickname pattern matched {len(profile_numbers)} users")
        return profile_numbers
