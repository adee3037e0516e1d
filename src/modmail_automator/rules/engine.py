"""
Rules engine for evaluating modmail messages against configured rules
"""
from dataclasses import dataclass
from datetime import datetime
import json
import logging
from typing import ClassVar, Iterable, List, Optional, Tuple, Union

from modmail_automator.modmail.models import AuthorProfile, Flair, ModmailMessage
from modmail_automator.modmail.ports import ModerationApi, ModerationApiError

from .comparators import meets_date_threshold, meets_numeric_threshold
from .matching import check_text_match
from .schema import AuthorCheck, Rule, SearchOptions, SetFlair

logger = logging.getLogger(__name__)

MOD_LOG_LIMIT = 200


@dataclass(frozen=True)
class RuleAction:
    """What to do if a rule is the winning match"""
    reply: Optional[str] = None
    private_reply: Optional[str] = None
    mute: Optional[int] = None
    archive: Optional[bool] = None
    unban: Optional[bool] = None
    approve_user: Optional[bool] = None
    set_flair: Optional[SetFlair] = None
    include_signoff: bool = True

    @classmethod
    def from_rule(cls, rule: Rule) -> 'RuleAction':
        return cls(
            reply=rule.reply,
            private_reply=rule.private_reply,
            mute=rule.mute,
            archive=rule.archive,
            unban=rule.unban,
            approve_user=rule.approve_user,
            set_flair=rule.author.set_flair if rule.author else None,
            include_signoff=rule.include_signoff,
        )

    def describe(self) -> List[str]:
        """Human readable list of the actions, for debug output"""
        bullets = []
        if self.reply:
            bullets.append("Reply to user")
        if self.private_reply:
            bullets.append("Make a private mod note")
        if self.archive:
            bullets.append("Archive message")
        if self.mute:
            bullets.append(f"Mute for {self.mute} {'day' if self.mute == 1 else 'days'}")
        if self.unban:
            bullets.append("Unban user")
        if self.approve_user:
            bullets.append("Add user as approved user")
        if self.set_flair:
            bullets.append("Set flair")
        return bullets


@dataclass(frozen=True)
class Captures:
    """Text and mod log details captured while matching, for placeholders"""
    subject_match: Optional[List[str]] = None
    body_match: Optional[List[str]] = None
    mod_action_date: Optional[datetime] = None
    mod_action_target_permalink: Optional[str] = None
    mod_action_target_kind: Optional[str] = None


@dataclass(frozen=True)
class RuleOutcome:
    rule: Rule

    @property
    def priority(self) -> int:
        return self.rule.effective_priority

    @property
    def action(self) -> RuleAction:
        return RuleAction.from_rule(self.rule)


@dataclass(frozen=True)
class RuleMatched(RuleOutcome):
    """Every check in the rule passed"""
    captures: Captures = Captures()
    trace: Tuple[str, ...] = ()
    matched: ClassVar[bool] = True


@dataclass(frozen=True)
class RuleNotMatched(RuleOutcome):
    """A check failed; reason describes the first failing check"""
    reason: str = ''
    trace: Tuple[str, ...] = ()
    matched: ClassVar[bool] = False


RuleResult = Union[RuleMatched, RuleNotMatched]


class LookupUnavailable(Exception):
    """A moderation API lookup failed, so the check depending on it can't pass"""


class _Evaluation:
    """Per-rule state threaded through the checks"""

    def __init__(self, rule: Rule):
        self.verbose = bool(rule.verbose_logs)
        self.trace: List[str] = []
        self.reason = ''
        self.subject_match: Optional[List[str]] = None
        self.body_match: Optional[List[str]] = None
        self.mod_action_date: Optional[datetime] = None
        self.mod_action_target_permalink: Optional[str] = None
        self.mod_action_target_kind: Optional[str] = None

    def log(self, text: str, match: Optional[List[str]] = None) -> None:
        if match is not None:
            text = f"{text} {json.dumps(match, ensure_ascii=False)}"
        logger.debug(text)
        if self.verbose:
            self.trace.append(text)

    def fail(self, reason: str) -> bool:
        self.log(reason)
        self.reason = reason
        return False

    def captures(self) -> Captures:
        return Captures(
            subject_match=self.subject_match,
            body_match=self.body_match,
            mod_action_date=self.mod_action_date,
            mod_action_target_permalink=self.mod_action_target_permalink,
            mod_action_target_kind=self.mod_action_target_kind,
        )


def _negated(options: Optional[SearchOptions]) -> SearchOptions:
    # A "not" field always negates, whether or not its options say so.
    if options is None:
        return SearchOptions(negate=True)
    if options.negate:
        return options
    return options.model_copy(update={'negate': True})


def visibility_matches(required: str, subreddit_type: str) -> bool:
    """Whether a subreddit type satisfies a sub_visibility check"""
    if required == 'public':
        return subreddit_type not in ('private', 'restricted', 'employees_only')
    if required == 'private':
        return subreddit_type in ('private', 'employees_only')
    if required == 'restricted':
        return subreddit_type == 'restricted'
    return False


def applies_to_position(rule: Rule, message: ModmailMessage) -> bool:
    """Whether a rule is eligible for a first message, reply or first user reply"""
    if message.is_first_message:
        return not rule.is_reply and not rule.is_first_user_reply
    if rule.is_reply is not None:
        return rule.is_reply
    return bool(rule.is_first_user_reply and message.is_first_user_reply)


def applies_to_author(rule: Rule, message: ModmailMessage) -> bool:
    """Whether a rule is eligible given who sent the message"""
    author = rule.author
    if author is None:
        return True
    if author.is_moderator and not message.author_is_moderator:
        return False
    if author.is_participant is not None and author.is_participant != message.author_is_participant:
        return False
    return True


class RulesEngine:
    """Engine for checking modmail messages against rules

    The moderation API is optional. Without it, checks that need a live
    lookup (banned, approved user, mod log, subreddit visibility) are skipped,
    which is how rules are dry-run offline and in tests.
    """

    def __init__(self, api: Optional[ModerationApi] = None, mod_log_limit: int = MOD_LOG_LIMIT):
        self.api = api
        self.mod_log_limit = mod_log_limit
        self._checks = (
            self._check_exemptions,
            self._check_subject,
            self._check_body,
            self._check_subject_and_body,
            self._check_author,
            self._check_mod_action,
            self._check_sub_visibility,
        )

    def select_rules(self, rules: Iterable[Rule], message: ModmailMessage) -> List[Rule]:
        """Narrow down to rules eligible for this message, highest priority first"""
        eligible = [rule for rule in rules if applies_to_position(rule, message) and applies_to_author(rule, message)]
        return sorted(eligible, key=lambda rule: rule.effective_priority, reverse=True)

    def find_match(self, rules: Iterable[Rule], message: ModmailMessage) -> Tuple[Optional[RuleMatched], List[RuleResult]]:
        """Check rules in order, stopping at the first one that matches"""
        results: List[RuleResult] = []
        for rule in rules:
            result = self.check_rule(rule, message)
            results.append(result)
            if result.matched:
                logger.debug(f"Rule matched with priority {result.priority}, not checking any more rules")
                return result, results
        return None, results

    def process_message(self, rules: Iterable[Rule], message: ModmailMessage) -> Tuple[Optional[RuleMatched], List[RuleResult]]:
        """Select eligible rules for a message and find the highest priority match"""
        eligible = self.select_rules(rules, message)
        logger.info(f"Checking {len(eligible)} eligible rules for message {message.message_id}")
        return self.find_match(eligible, message)

    def check_rule(self, rule: Rule, message: ModmailMessage) -> RuleResult:
        """Check whether a single rule matches the message and its context"""
        evaluation = _Evaluation(rule)
        if rule.rule_friendly_name:
            evaluation.log(f'Processing rule with name "{rule.rule_friendly_name}"')

        for check in self._checks:
            try:
                passed = check(rule, message, evaluation)
            except LookupUnavailable as e:
                passed = evaluation.fail(f"{e} could not be checked, skipping rule.")
            if not passed:
                return RuleNotMatched(rule=rule, reason=evaluation.reason, trace=tuple(evaluation.trace))

        evaluation.log("All checks passed.")
        return RuleMatched(rule=rule, captures=evaluation.captures(), trace=tuple(evaluation.trace))

    def _lookup(self, description: str, call, *args):
        try:
            return call(*args)
        except ModerationApiError as e:
            logger.warning(f"{description} lookup failed: {e}")
            raise LookupUnavailable(description) from e

    def _check_exemptions(self, rule: Rule, message: ModmailMessage, evaluation: _Evaluation) -> bool:
        targets_moderators = bool(rule.author and rule.author.is_moderator)
        if rule.exempts_moderators and message.author_is_moderator and not targets_moderators:
            return evaluation.fail("Rule exempts moderators, and user is a mod.")

        if rule.exempts_admins and message.author_is_admin:
            return evaluation.fail("Rule exempts admins, and user is an admin.")
        return True

    def _check_length(self, text: str, shorter_than: Optional[int], longer_than: Optional[int],
                      label: str, evaluation: _Evaluation) -> bool:
        if shorter_than is not None:
            if len(text) >= shorter_than:
                return evaluation.fail(f"{label} is too long, so rule fails.")
            evaluation.log(f"{label} is shorter than specified length, so check passes.")

        if longer_than is not None:
            if len(text) <= longer_than:
                return evaluation.fail(f"{label} is too short, so rule fails.")
            evaluation.log(f"{label} is longer than specified length, so check passes.")
        return True

    def _check_subject(self, rule: Rule, message: ModmailMessage, evaluation: _Evaluation) -> bool:
        if rule.subject:
            evaluation.subject_match = check_text_match(message.subject, rule.subject, rule.subject_options)
            if not evaluation.subject_match:
                return evaluation.fail("Subject does not match.")
            evaluation.log("Subject matched successfully.", evaluation.subject_match)

        if rule.notsubject:
            if not check_text_match(message.subject, rule.notsubject, _negated(rule.notsubject_options)):
                return evaluation.fail("Negated subject matched, so rule fails.")
            evaluation.log("Negated subject did not match, so check passes.")

        return self._check_length(message.subject, rule.subject_shorter_than, rule.subject_longer_than,
                                  "Subject", evaluation)

    def _check_body(self, rule: Rule, message: ModmailMessage, evaluation: _Evaluation) -> bool:
        if rule.body:
            evaluation.body_match = check_text_match(message.body, rule.body, rule.body_options)
            if not evaluation.body_match:
                return evaluation.fail("Body does not match.")
            evaluation.log("Body matched successfully.", evaluation.body_match)

        if rule.notbody:
            if not check_text_match(message.body, rule.notbody, _negated(rule.notbody_options)):
                return evaluation.fail("Negated body matched, so rule fails.")
            evaluation.log("Negated body did not match, so check passes.")

        return self._check_length(message.body, rule.body_shorter_than, rule.body_longer_than,
                                  "Body", evaluation)

    def _check_subject_and_body(self, rule: Rule, message: ModmailMessage, evaluation: _Evaluation) -> bool:
        if rule.subjectandbody:
            subject_match = check_text_match(message.subject, rule.subjectandbody, rule.subjectandbody_options)
            body_match = check_text_match(message.body, rule.subjectandbody, rule.subjectandbody_options)
            if not subject_match and not body_match:
                return evaluation.fail("subject+body does not match.")
            evaluation.subject_match = subject_match or evaluation.subject_match
            evaluation.body_match = body_match or evaluation.body_match
            evaluation.log("subject+body matched successfully.", subject_match or body_match)

        if rule.notsubjectandbody:
            options = _negated(rule.notsubjectandbody_options)
            subject_clear = check_text_match(message.subject, rule.notsubjectandbody, options)
            body_clear = check_text_match(message.body, rule.notsubjectandbody, options)
            if not subject_clear or not body_clear:
                return evaluation.fail("Negated subject+body matched, so rule fails.")
            evaluation.log("Negated subject+body did not match, so check passes.")
        return True

    def _check_author(self, rule: Rule, message: ModmailMessage, evaluation: _Evaluation) -> bool:
        author = rule.author
        if author is None:
            return True

        profile = message.participant
        if profile is not None:
            if not self._check_thresholds(author, profile, evaluation):
                return False

            if self.api is not None and author.is_banned is not None:
                is_banned = self._lookup("Banned user", self.api.is_banned, message.subreddit_name, message.participant_name)
                if author.is_banned != is_banned:
                    return evaluation.fail("User banned check failed, skipping rule.")
                evaluation.log("User banned check matched.")

            if self.api is not None and author.is_contributor is not None:
                is_contributor = self._lookup("Approved user", self.api.is_contributor, message.subreddit_name, profile.username)
                if author.is_contributor != is_contributor:
                    return evaluation.fail("Approved User check failed, skipping rule.")
                evaluation.log("Approved User check matched.")

            if author.has_flair_checks and not self._check_flair(author, message, profile, evaluation):
                return False

        if author.is_moderator is not None:
            if author.is_moderator != message.author_is_moderator:
                return evaluation.fail("Moderator check failed, skipping rule.")
            evaluation.log("Moderator check passed.")

        if author.name:
            if not check_text_match(message.participant_name, author.name, author.name_options):
                return evaluation.fail("Author name doesn't match.")
            evaluation.log("Author name matches.")

        if author.notname:
            if not check_text_match(message.participant_name, author.notname, _negated(author.notname_options)):
                return evaluation.fail("Negated author name matched, so rule fails.")
            evaluation.log("Negated author name does not match, so check passes.")

        if author.is_shadowbanned is not None:
            if author.is_shadowbanned != (profile is None):
                return evaluation.fail("Shadowban check failed, skipping rule.")
            evaluation.log("Shadowban check passed.")

        if profile is None and author.needs_profile:
            return evaluation.fail("Author is shadowbanned and uncheckable author checks exist.")
        return True

    def _check_thresholds(self, author: AuthorCheck, profile: AuthorProfile, evaluation: _Evaluation) -> bool:
        checks = []
        if author.post_karma:
            checks.append(("Post karma", meets_numeric_threshold(profile.link_karma, author.post_karma)))
        if author.comment_karma:
            checks.append(("Comment karma", meets_numeric_threshold(profile.comment_karma, author.comment_karma)))
        if author.combined_karma:
            checks.append(("Combined karma", meets_numeric_threshold(profile.combined_karma, author.combined_karma)))
        if author.account_age:
            checks.append(("Account age", meets_date_threshold(profile.created_at, author.account_age)))

        if not checks:
            return True

        for label, passed in checks:
            evaluation.log(f"{label} threshold matched: {json.dumps(passed)}")

        outcomes = [passed for _, passed in checks]
        evaluation.log(f"Number of threshold checks matched: {sum(outcomes)} of {len(outcomes)} run")

        if author.satisfy_any_threshold:
            if not any(outcomes):
                return evaluation.fail("Satisfy any threshold is set to true, therefore threshold checks not passed.")
        elif not all(outcomes):
            return evaluation.fail("Satisfy any threshold is set to false or unspecified, therefore threshold checks not passed.")

        evaluation.log(f"Satisfy any threshold is set to {json.dumps(bool(author.satisfy_any_threshold))} therefore threshold checks passed.")
        return True

    def _get_flair(self, message: ModmailMessage, profile: AuthorProfile) -> Optional[Flair]:
        if self.api is None:
            return profile.flair
        return self._lookup("User flair", self.api.get_user_flair, message.subreddit_name, profile.username)

    def _check_flair(self, author: AuthorCheck, message: ModmailMessage, profile: AuthorProfile,
                     evaluation: _Evaluation) -> bool:
        flair = self._get_flair(message, profile)
        if flair is None:
            return evaluation.fail("User does not have flair, but flair checks exist. Skipping rule.")

        flair_text = flair.text or ''
        flair_css_class = flair.css_class or ''

        if author.flair_text:
            if not check_text_match(flair_text, author.flair_text, author.flair_text_options):
                return evaluation.fail("Flair text does not match.")
            evaluation.log("Flair text matched successfully.")

        if author.notflair_text:
            if not check_text_match(flair_text, author.notflair_text, _negated(author.notflair_text_options)):
                return evaluation.fail("Negated flair text matched, so rule fails.")
            evaluation.log("Negated flair text did not match, so check passes.")

        if author.flair_css_class:
            if not check_text_match(flair_css_class, author.flair_css_class, author.flair_css_class_options):
                return evaluation.fail("Flair CSS class does not match.")
            evaluation.log("Flair CSS class matched successfully.")

        if author.notflair_css_class:
            if not check_text_match(flair_css_class, author.notflair_css_class, _negated(author.notflair_css_class_options)):
                return evaluation.fail("Negated flair CSS class matched, so rule fails.")
            evaluation.log("Negated flair CSS class did not match, so check passes.")

        evaluation.log("Flair matched.")
        return True

    def _check_mod_action(self, rule: Rule, message: ModmailMessage, evaluation: _Evaluation) -> bool:
        mod_action = rule.mod_action
        if mod_action is None:
            return True

        if self.api is None:
            evaluation.log("No moderation API available, mod action checks skipped.")
            return True

        if message.participant is None:
            return evaluation.fail("Author is shadowbanned, so the mod log can't be checked.")

        entries = []
        for action_type in mod_action.mod_action_type or [None]:
            entries.extend(self._lookup(
                "Moderation log", self.api.get_moderation_log,
                message.subreddit_name, mod_action.moderator_name, action_type, self.mod_log_limit,
            ))

        entries = [entry for entry in entries if entry.target_author == message.participant_name]
        logger.debug(f"{len(entries)} log entries found for {message.participant_name}")

        if mod_action.action_within:
            entries = [entry for entry in entries
                       if meets_date_threshold(entry.created_at, mod_action.action_within, default_operator='<')]
            logger.debug(f"After removing old entries: {len(entries)} log entries still found")

        if mod_action.action_reason:
            entries = [
                entry for entry in entries
                if (entry.details and check_text_match(entry.details, mod_action.action_reason, mod_action.action_reason_options))
                or (entry.description and check_text_match(entry.description, mod_action.action_reason, mod_action.action_reason_options))
            ]
            logger.debug(f"After removing non-matching reasons: {len(entries)} log entries still found")

        if mod_action.still_in_queue is not None:
            queue_ids = self._lookup("Mod queue", self.api.get_mod_queue_ids, message.subreddit_name)
            entries = [entry for entry in entries
                       if entry.target_id and (entry.target_id in queue_ids) == mod_action.still_in_queue]

        if not entries:
            return evaluation.fail("No matching mod log entry!")
        evaluation.log(f"Found {len(entries)} matching {'entry' if len(entries) == 1 else 'entries'} in mod log.")

        latest = max(entries, key=lambda entry: entry.created_at)
        evaluation.mod_action_date = latest.created_at
        evaluation.mod_action_target_permalink = latest.target_permalink
        evaluation.mod_action_target_kind = latest.target_kind
        return True

    def _check_sub_visibility(self, rule: Rule, message: ModmailMessage, evaluation: _Evaluation) -> bool:
        if rule.sub_visibility is None or self.api is None:
            return True

        subreddit_type = self._lookup("Subreddit type", self.api.get_subreddit_type, message.subreddit_name)
        if not visibility_matches(rule.sub_visibility, subreddit_type):
            return evaluation.fail(f"Subreddit is {subreddit_type} not {rule.sub_visibility}.")
        evaluation.log(f"Sub visibility {rule.sub_visibility} matched the sub type property.")
        return True
