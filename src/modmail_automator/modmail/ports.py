"""
Ports (interfaces) to the hosting platform.

The rules engine and autoresponder only talk to Reddit through these
protocols, so any client library (or a test double) can be plugged in.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Set

from .models import AuthorProfile, Flair, ModLogEntry

SUBREDDIT_TYPES = ('public', 'private', 'restricted', 'employees_only', 'archived', 'gold_restricted', 'user')


class ModerationApiError(Exception):
    """Raised by a moderation API binding when a lookup fails"""


class UserNotFoundError(ModerationApiError):
    """Raised when a user can't be resolved, e.g. shadowbanned or suspended accounts"""


class ModerationApi(Protocol):
    """Read-only lookups the rules engine may need"""

    def get_user(self, username: str) -> Optional[AuthorProfile]:
        ...

    def is_banned(self, subreddit_name: str, username: str) -> bool:
        ...

    def is_contributor(self, subreddit_name: str, username: str) -> bool:
        ...

    def is_moderator(self, subreddit_name: str, username: str) -> bool:
        ...

    def get_user_flair(self, subreddit_name: str, username: str) -> Optional[Flair]:
        ...

    def get_moderation_log(
        self,
        subreddit_name: str,
        moderators: Optional[List[str]] = None,
        action_type: Optional[str] = None,
        limit: int = 200,
    ) -> List[ModLogEntry]:
        ...

    def get_mod_queue_ids(self, subreddit_name: str) -> Set[str]:
        ...

    def get_subreddit_type(self, subreddit_name: str) -> str:
        ...


class ModmailActions(Protocol):
    """Operations that change state on the host"""

    def reply(self, conversation_id: str, body: str, is_internal: bool) -> None:
        ...

    def mute(self, conversation_id: str, hours: int) -> None:
        ...

    def archive(self, conversation_id: str) -> None:
        ...

    def unban_user(self, username: str, subreddit_name: str) -> None:
        ...

    def approve_user(self, username: str, subreddit_name: str) -> None:
        ...

    def set_user_flair(
        self,
        subreddit_name: str,
        username: str,
        text: Optional[str] = None,
        css_class: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> None:
        ...


class Scheduler(Protocol):
    """Runs a named job later with JSON-serialisable data"""

    def schedule(self, job_name: str, data: Dict[str, Any], run_at: datetime) -> None:
        ...
