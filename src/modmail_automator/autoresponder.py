"""
Modmail event handling: decides whether a new modmail message gets an
automatic response, and which one.
"""
from dataclasses import replace
from datetime import datetime, timedelta, timezone
import json
from typing import Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from .database.models import ProcessedMessage
from .modmail.actions import ACT_ON_MESSAGE_JOB, ModmailAction, apply_action
from .modmail.cache import CachedModerationApi
from .modmail.models import AuthorProfile, Conversation, ConversationMessage, ModmailMessage
from .modmail.ports import ModerationApi, ModerationApiError, ModmailActions, Scheduler
from .rules import RuleMatched, RuleParseError, RulesEngine, parse_rules
from .rules.engine import RuleResult
from .rules.placeholders import apply_match_placeholders, apply_reply_placeholders
from .settings import DEFAULT_SIGNOFF, AppSettings

logger = structlog.get_logger()

DEDUPE_TTL = timedelta(days=1)
DEBUG_HEADER = "Modmail Automator logs"


def find_current_message(conversation: Conversation, message_id: str) -> Optional[ConversationMessage]:
    """Find the message an event refers to; event ids may carry a type prefix"""
    return next((message for message in conversation.messages if message.id and message.id in message_id), None)


def is_first_user_reply(conversation: Conversation, current: ConversationMessage) -> bool:
    """True if this is the participant's first message after the opening one"""
    first = conversation.messages[0]
    if current.id == first.id:
        return False
    first_reply = next(
        (message for message in conversation.messages[1:]
         if message.author_name and message.author_name == conversation.participant_name),
        None,
    )
    return first_reply is not None and first_reply.id == current.id


def format_debug_output(results: Iterable[RuleResult]) -> Optional[str]:
    """Render verbose rule traces as a markdown private note, or None if there are none"""
    results = [result for result in results if result.trace]
    if not results:
        return None

    sections: List[str] = [DEBUG_HEADER]
    for result in results:
        sections.append("---")
        sections.append(f"Priority: {result.priority}")
        sections.append(f"Rule matched: {json.dumps(result.matched)}")
        sections.append("\n".join(f"* {line}" for line in result.trace))
        if result.matched:
            sections.append("Actions to take if this is the highest priority match:")
            bullets = result.action.describe()
            if bullets:
                sections.append("\n".join(f"* {bullet}" for bullet in bullets))
    return "\n\n".join(sections)


class Autoresponder:
    """Handles new modmail messages for one subreddit"""

    def __init__(
        self,
        db: Session,
        api: ModerationApi,
        actions: ModmailActions,
        settings: AppSettings,
        subreddit_name: str,
        scheduler: Optional[Scheduler] = None,
        app_name: str = 'modmail-automator',
    ):
        self.db = db
        self.api = api
        self.actions = actions
        self.settings = settings
        self.subreddit_name = subreddit_name
        self.scheduler = scheduler
        self.app_name = app_name

    def _already_processed(self, message_id: str, conversation_id: str) -> bool:
        """Record the message as processed, returning True if it already was"""
        now = datetime.utcnow()
        self.db.query(ProcessedMessage).filter(ProcessedMessage.expires_at <= now).delete()

        existing = self.db.query(ProcessedMessage).filter(ProcessedMessage.message_id == message_id).first()
        if existing:
            return True

        self.db.add(ProcessedMessage(
            message_id=message_id,
            conversation_id=conversation_id,
            processed_at=now,
            expires_at=now + DEDUPE_TTL,
        ))
        self.db.commit()
        return False

    def _get_participant(self, api: ModerationApi, username: str) -> Optional[AuthorProfile]:
        try:
            return api.get_user(username)
        except ModerationApiError as e:
            # Shadowbanned and suspended users can't be looked up
            logger.info("Participant could not be resolved", username=username, error=str(e))
            return None

    def _is_moderator(self, api: ModerationApi, username: Optional[str]) -> bool:
        if not username:
            return False
        try:
            return api.is_moderator(self.subreddit_name, username)
        except ModerationApiError as e:
            logger.warning("Moderator lookup failed", username=username, error=str(e))
            return False

    def handle(self, conversation: Conversation, message_id: str) -> Optional[ModmailAction]:
        """Process one new modmail message, returning the action taken or scheduled"""
        logger.info("Received modmail event", conversation_id=conversation.id, message_id=message_id)

        if not conversation.messages:
            return None

        current = find_current_message(conversation, message_id)
        if current is None:
            logger.warning("Cannot find current message", message_id=message_id)
            return None

        if not current.author_name:
            return None

        if current.author_name == self.app_name:
            logger.info("Modmail event triggered by this app, ignoring")
            return None

        if self._already_processed(message_id, conversation.id):
            logger.info("Already processed this message, ignoring", message_id=message_id)
            return None

        # Sub to sub modmail and internal mod discussions have no participant
        if not conversation.participant_name:
            logger.info("There is no participant for the modmail conversation")
            return None

        try:
            rules = parse_rules(self.settings.rules)
        except RuleParseError as e:
            logger.error("Error parsing rules", error=str(e))
            return None

        api = CachedModerationApi(self.api)
        engine = RulesEngine(api)

        is_first_message = current.id == conversation.messages[0].id
        message = ModmailMessage(
            conversation_id=conversation.id,
            message_id=message_id,
            subreddit_name=self.subreddit_name,
            subject=conversation.subject or '',
            body=current.body_markdown or '',
            participant_name=conversation.participant_name,
            author_name=current.author_name,
            author_is_moderator=self._is_moderator(api, current.author_name),
            author_is_admin=current.is_admin,
            author_is_participant=current.is_participant,
            is_first_message=is_first_message,
            is_first_user_reply=not is_first_message and is_first_user_reply(conversation, current),
        )

        eligible = engine.select_rules(rules, message)
        if not eligible:
            logger.info("No eligible rules exist for a message in this state")
            return None

        message = replace(message, participant=self._get_participant(api, conversation.participant_name))
        matched, results = engine.find_match(eligible, message)

        debug_output = format_debug_output(results)
        if debug_output:
            self.actions.reply(conversation.id, debug_output, is_internal=True)

        if matched is None:
            logger.info("No rules matched", rules_checked=len(results))
            return None

        logger.info("Matched a rule", rule=matched.rule.rule_friendly_name, priority=matched.priority)
        action = self.build_action(matched, message)

        delay = self.settings.seconds_delay_before_send
        if delay and self.scheduler is not None:
            logger.info("Delayed action enabled", seconds=delay)
            self.scheduler.schedule(
                ACT_ON_MESSAGE_JOB,
                action.to_job_data(),
                datetime.now(timezone.utc) + timedelta(seconds=delay),
            )
        else:
            apply_action(action, self.api, self.actions)
        return action

    def build_action(self, matched: RuleMatched, message: ModmailMessage) -> ModmailAction:
        """Turn a matched rule into a concrete action with placeholders filled in"""
        rule_action = matched.action
        settings = self.settings

        set_flair = rule_action.set_flair
        if set_flair and set_flair.set_flair_text:
            set_flair = set_flair.model_copy(update={
                'set_flair_text': apply_match_placeholders(set_flair.set_flair_text, matched.captures),
            })

        def fill(text: str) -> str:
            return apply_reply_placeholders(
                text, matched.captures, message.participant_name, message.subreddit_name,
                locale=settings.locale, post_string=settings.post_string, comment_string=settings.comment_string,
            )

        reply = None
        if rule_action.reply:
            reply = fill(rule_action.reply)
            signoff = DEFAULT_SIGNOFF if settings.signoff is None else settings.signoff
            if signoff and rule_action.include_signoff and (not message.author_is_moderator or settings.include_signoff_for_mods):
                reply += f"\n\n{signoff}"

        private_reply = fill(rule_action.private_reply) if rule_action.private_reply else None

        return ModmailAction(
            conversation_id=message.conversation_id,
            username=message.participant_name,
            subreddit_name=message.subreddit_name,
            reply=reply,
            private_reply=private_reply,
            mute=rule_action.mute,
            archive=rule_action.archive,
            unban=rule_action.unban,
            approve_user=rule_action.approve_user,
            set_flair=set_flair,
            include_signoff=rule_action.include_signoff,
        )
