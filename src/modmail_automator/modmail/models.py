"""
Host-facing data types.

These dataclasses describe what the rules engine needs to know about a
modmail message and the people and moderation history around it, without
depending on any particular Reddit client.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

COMMENT_ID_PREFIX = 't1_'
POST_ID_PREFIX = 't3_'


@dataclass(frozen=True)
class Flair:
    """A user's flair in a subreddit"""
    text: Optional[str] = None
    css_class: Optional[str] = None


@dataclass(frozen=True)
class AuthorProfile:
    """A resolved (not shadowbanned or suspended) user"""
    username: str
    link_karma: int
    comment_karma: int
    created_at: datetime
    # Only consulted when no moderation API is available to look the flair up
    flair: Optional[Flair] = None

    @property
    def combined_karma(self) -> int:
        return self.link_karma + self.comment_karma


@dataclass(frozen=True)
class ModLogEntry:
    """One entry from a subreddit's moderation log"""
    id: str
    created_at: datetime
    action_type: str
    moderator_name: Optional[str] = None
    target_id: Optional[str] = None
    target_author: Optional[str] = None
    target_permalink: Optional[str] = None
    details: Optional[str] = None
    description: Optional[str] = None

    @property
    def target_kind(self) -> Optional[str]:
        if not self.target_id:
            return None
        if self.target_id.startswith(COMMENT_ID_PREFIX):
            return 'comment'
        if self.target_id.startswith(POST_ID_PREFIX):
            return 'post'
        return None


@dataclass(frozen=True)
class ModmailMessage:
    """A single modmail message together with what is known about who sent it"""
    conversation_id: str
    message_id: str
    subreddit_name: str
    subject: str
    body: str
    participant_name: str
    participant: Optional[AuthorProfile] = None
    author_name: Optional[str] = None
    author_is_moderator: bool = False
    author_is_admin: bool = False
    author_is_participant: bool = True
    is_first_message: bool = True
    is_first_user_reply: bool = False


@dataclass(frozen=True)
class ConversationMessage:
    """A message within a modmail conversation, as delivered by the host"""
    id: str
    author_name: Optional[str]
    body_markdown: str = ''
    is_admin: bool = False
    is_participant: bool = False


@dataclass(frozen=True)
class Conversation:
    """A modmail conversation, messages in the order they were sent"""
    id: str
    subject: str
    participant_name: Optional[str]
    messages: List[ConversationMessage] = field(default_factory=list)
