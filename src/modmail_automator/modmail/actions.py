"""
Application of a matched rule's actions to a modmail conversation
"""
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel

from modmail_automator.rules.schema import SetFlair

from .ports import ModerationApi, ModerationApiError, ModmailActions

logger = logging.getLogger(__name__)

ACT_ON_MESSAGE_JOB = 'act_on_message_after_delay'

# Mute durations the host accepts, in hours
ALLOWED_MUTE_HOURS = (72, 168, 672)


class ModmailAction(BaseModel):
    """Everything needed to act on a conversation, with placeholders already applied"""
    conversation_id: str
    username: str
    subreddit_name: str
    reply: Optional[str] = None
    private_reply: Optional[str] = None
    mute: Optional[int] = None
    archive: Optional[bool] = None
    unban: Optional[bool] = None
    approve_user: Optional[bool] = None
    set_flair: Optional[SetFlair] = None
    include_signoff: bool = True

    def to_job_data(self) -> Dict[str, Any]:
        return {'action': self.model_dump_json()}

    @classmethod
    def from_job_data(cls, data: Dict[str, Any]) -> 'ModmailAction':
        return cls.model_validate_json(data['action'])


def _can_set_flair(action: ModmailAction, api: ModerationApi) -> bool:
    if action.set_flair.override_flair:
        return True

    try:
        user = api.get_user(action.username)
    except ModerationApiError as e:
        logger.warning(f"Could not look up {action.username} before setting flair: {e}")
        return False

    if user is None:
        return False

    try:
        current_flair = api.get_user_flair(action.subreddit_name, action.username)
    except ModerationApiError as e:
        logger.warning(f"Could not look up current flair for {action.username}: {e}")
        return False

    return not (current_flair and current_flair.text)


def apply_action(action: ModmailAction, api: ModerationApi, actions: ModmailActions) -> None:
    """Carry out every action requested, in a fixed order"""
    if action.reply:
        actions.reply(action.conversation_id, action.reply, is_internal=False)
        logger.info("Replied to modmail")

    if action.private_reply:
        actions.reply(action.conversation_id, action.private_reply, is_internal=True)
        logger.info("Added private mod note to modmail")

    if action.mute:
        mute_hours = action.mute * 24
        if mute_hours in ALLOWED_MUTE_HOURS:
            actions.mute(action.conversation_id, mute_hours)
            logger.info("User muted")
        else:
            logger.warning(f"Ignoring mute of {action.mute} days, not a supported duration")

    if action.archive:
        actions.archive(action.conversation_id)
        logger.info("Conversation archived")

    if action.unban:
        actions.unban_user(action.username, action.subreddit_name)
        logger.info("User unbanned")

    if action.approve_user:
        actions.approve_user(action.username, action.subreddit_name)
        logger.info("User has been added as approved user")

    if action.set_flair:
        if _can_set_flair(action, api):
            actions.set_user_flair(
                action.subreddit_name,
                action.username,
                text=action.set_flair.set_flair_text,
                css_class=action.set_flair.set_flair_css_class,
                template_id=action.set_flair.set_flair_template_id,
            )
            logger.info("New flair set")
        else:
            logger.info("User already has a flair, cannot set.")


def act_on_message_after_delay(data: Optional[Dict[str, Any]], api: ModerationApi, actions: ModmailActions) -> None:
    """Scheduled job entry point: restore a serialised action and apply it"""
    if not data:
        logger.warning("Scheduler job's data not assigned")
        return

    apply_action(ModmailAction.from_job_data(data), api, actions)
