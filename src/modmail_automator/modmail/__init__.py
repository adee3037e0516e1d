"""
Modmail host integration: data types, ports and action application
"""
from .models import AuthorProfile, Conversation, ConversationMessage, Flair, ModLogEntry, ModmailMessage
from .ports import ModerationApi, ModerationApiError, ModmailActions, Scheduler, UserNotFoundError

__all__ = [
    'AuthorProfile',
    'Conversation',
    'ConversationMessage',
    'Flair',
    'ModLogEntry',
    'ModmailMessage',
    'ModerationApi',
    'ModerationApiError',
    'ModmailActions',
    'Scheduler',
    'UserNotFoundError',
]
