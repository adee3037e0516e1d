"""
Per-pass lookup cache.

Several rules in one pass often ask the same question (is this user banned,
what is their flair, what is in the mod log). CachedModerationApi wraps a
ModerationApi and answers repeated lookups with identical arguments from
memory. Create one per handled message and discard it afterwards; nothing
is ever invalidated.
"""
import logging
from typing import Any, Dict, Hashable, List, Optional, Set, Tuple

from .models import AuthorProfile, Flair, ModLogEntry
from .ports import ModerationApi

logger = logging.getLogger(__name__)


def _freeze(value: Any) -> Hashable:
    if isinstance(value, list):
        return tuple(value)
    return value


class CachedModerationApi:
    """Memoising wrapper around a ModerationApi for one evaluation pass"""

    def __init__(self, api: ModerationApi):
        self._api = api
        self._cache: Dict[Tuple[Hashable, ...], Any] = {}
        self.hits = 0
        self.misses = 0

    def _cached(self, method: str, *args):
        key = (method,) + tuple(_freeze(arg) for arg in args)
        if key in self._cache:
            self.hits += 1
            return self._cache[key]

        self.misses += 1
        logger.debug(f"Cache miss for {method}{args}")
        result = getattr(self._api, method)(*args)
        self._cache[key] = result
        return result

    def get_user(self, username: str) -> Optional[AuthorProfile]:
        return self._cached('get_user', username)

    def is_banned(self, subreddit_name: str, username: str) -> bool:
        return self._cached('is_banned', subreddit_name, username)

    def is_contributor(self, subreddit_name: str, username: str) -> bool:
        return self._cached('is_contributor', subreddit_name, username)

    def is_moderator(self, subreddit_name: str, username: str) -> bool:
        return self._cached('is_moderator', subreddit_name, username)

    def get_user_flair(self, subreddit_name: str, username: str) -> Optional[Flair]:
        return self._cached('get_user_flair', subreddit_name, username)

    def get_moderation_log(
        self,
        subreddit_name: str,
        moderators: Optional[List[str]] = None,
        action_type: Optional[str] = None,
        limit: int = 200,
    ) -> List[ModLogEntry]:
        return self._cached('get_moderation_log', subreddit_name, moderators, action_type, limit)

    def get_mod_queue_ids(self, subreddit_name: str) -> Set[str]:
        return self._cached('get_mod_queue_ids', subreddit_name)

    def get_subreddit_type(self, subreddit_name: str) -> str:
        return self._cached('get_subreddit_type', subreddit_name)
