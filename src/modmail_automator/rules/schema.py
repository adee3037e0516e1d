"""
Schema for modmail autoresponder rules
"""
import re
from typing import Annotated, List, Literal, Optional, get_args

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .comparators import DATE_COMPARATOR_PATTERN, NUMERIC_COMPARATOR_PATTERN

SearchMethod = Literal['includes', 'includes-word', 'starts-with', 'ends-with', 'full-exact', 'regex']
ModActionType = Literal[
    'banuser', 'unbanuser', 'spamlink', 'removelink', 'approvelink', 'spamcomment',
    'removecomment', 'approvecomment', 'editflair', 'lock', 'unlock', 'muteuser',
    'unmuteuser', 'addremovalreason',
]
SubVisibility = Literal['public', 'private', 'restricted']

SEARCH_METHODS = get_args(SearchMethod)
DEFAULT_SEARCH_METHOD = 'includes'
MOD_ACTION_TYPES = get_args(ModActionType)

ALLOWED_MUTE_DAYS = (3, 7, 28)

FLAIR_TEMPLATE_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"


def _as_list(value):
    # A bare scalar for a list field becomes a one-element list. Nothing else is coerced.
    if value is not None and not isinstance(value, list):
        return [value]
    return value


NonEmptyStr = Annotated[str, Field(min_length=1)]
MatchList = Annotated[List[NonEmptyStr], BeforeValidator(_as_list)]
ModActionTypeList = Annotated[List[ModActionType], BeforeValidator(_as_list)]
NumericComparator = Annotated[str, Field(pattern=NUMERIC_COMPARATOR_PATTERN)]
DateComparator = Annotated[str, Field(pattern=DATE_COMPARATOR_PATTERN)]


class RuleModel(BaseModel):
    """Closed-world base: unknown keys and implicit type coercion are rejected"""
    model_config = ConfigDict(extra='forbid', strict=True, frozen=True)


class SearchOptions(RuleModel):
    """How a list of match strings is compared against a piece of text"""
    search_method: Optional[SearchMethod] = None
    case_sensitive: Optional[bool] = None
    negate: Optional[bool] = None

    @property
    def method(self) -> str:
        return self.search_method or DEFAULT_SEARCH_METHOD


DEFAULT_SEARCH_OPTIONS = SearchOptions()


class SetFlair(RuleModel):
    """Flair to apply to the author when the rule matches"""
    override_flair: Optional[bool] = None
    set_flair_text: Optional[str] = None
    set_flair_css_class: Optional[str] = None
    set_flair_template_id: Optional[Annotated[str, Field(pattern=FLAIR_TEMPLATE_ID_PATTERN)]] = None


class AuthorCheck(RuleModel):
    """Checks against the modmail participant"""
    name: Optional[MatchList] = None
    name_options: Optional[SearchOptions] = None
    notname: Optional[MatchList] = None
    notname_options: Optional[SearchOptions] = None
    post_karma: Optional[NumericComparator] = None
    comment_karma: Optional[NumericComparator] = None
    combined_karma: Optional[NumericComparator] = None
    account_age: Optional[DateComparator] = None
    satisfy_any_threshold: Optional[bool] = None
    flair_text: Optional[MatchList] = None
    flair_text_options: Optional[SearchOptions] = None
    notflair_text: Optional[MatchList] = None
    notflair_text_options: Optional[SearchOptions] = None
    flair_css_class: Optional[MatchList] = None
    flair_css_class_options: Optional[SearchOptions] = None
    notflair_css_class: Optional[MatchList] = None
    notflair_css_class_options: Optional[SearchOptions] = None
    is_participant: Optional[bool] = None
    is_contributor: Optional[bool] = None
    is_moderator: Optional[bool] = None
    is_shadowbanned: Optional[bool] = None
    is_banned: Optional[bool] = None
    set_flair: Optional[SetFlair] = None

    @property
    def has_flair_checks(self) -> bool:
        return bool(self.flair_text or self.notflair_text or self.flair_css_class or self.notflair_css_class)

    @property
    def needs_profile(self) -> bool:
        """True if any check can only be answered for a resolvable (not shadowbanned) user"""
        return bool(
            self.post_karma or self.comment_karma or self.combined_karma or self.account_age
            or self.has_flair_checks
            or self.is_banned is not None or self.is_contributor is not None
        )


class ModActionCheck(RuleModel):
    """Checks against the subreddit's moderation log"""
    moderator_name: Optional[MatchList] = None
    mod_action_type: Optional[ModActionTypeList] = None
    action_within: Optional[DateComparator] = None
    action_reason: Optional[MatchList] = None
    action_reason_options: Optional[SearchOptions] = None
    still_in_queue: Optional[bool] = None


class Rule(RuleModel):
    """A single autoresponder rule: predicates plus the actions to take"""
    rule_friendly_name: Optional[NonEmptyStr] = None
    is_reply: Optional[bool] = None
    is_first_user_reply: Optional[bool] = None

    subject: Optional[MatchList] = None
    subject_options: Optional[SearchOptions] = None
    notsubject: Optional[MatchList] = None
    notsubject_options: Optional[SearchOptions] = None
    body: Optional[MatchList] = None
    body_options: Optional[SearchOptions] = None
    notbody: Optional[MatchList] = None
    notbody_options: Optional[SearchOptions] = None
    subjectandbody: Optional[MatchList] = None
    subjectandbody_options: Optional[SearchOptions] = None
    notsubjectandbody: Optional[MatchList] = None
    notsubjectandbody_options: Optional[SearchOptions] = None
    subject_shorter_than: Optional[int] = None
    subject_longer_than: Optional[int] = None
    body_shorter_than: Optional[int] = None
    body_longer_than: Optional[int] = None

    moderators_exempt: Optional[bool] = None
    admins_exempt: Optional[bool] = None

    author: Optional[AuthorCheck] = None
    mod_action: Optional[ModActionCheck] = None
    sub_visibility: Optional[SubVisibility] = None

    priority: Optional[int] = None
    reply: Optional[str] = None
    private_reply: Optional[str] = None
    mute: Optional[int] = None
    archive: Optional[bool] = None
    unban: Optional[bool] = None
    approve_user: Optional[bool] = None
    verbose_logs: Optional[bool] = None
    signoff: Optional[bool] = None

    @property
    def effective_priority(self) -> int:
        return self.priority or 0

    @property
    def exempts_moderators(self) -> bool:
        return self.moderators_exempt is not False

    @property
    def exempts_admins(self) -> bool:
        return self.admins_exempt is not False

    @property
    def include_signoff(self) -> bool:
        return self.signoff is not False


# (owner, field, label) for every list that may be compiled as a regex
_REGEX_FIELDS = (
    ('rule', 'subject', 'subject'),
    ('rule', 'notsubject', '~subject'),
    ('rule', 'body', 'body'),
    ('rule', 'notbody', '~body'),
    ('rule', 'subjectandbody', 'subject+body'),
    ('rule', 'notsubjectandbody', '~subject+body'),
    ('author', 'name', 'author name'),
    ('author', 'notname', 'author ~name'),
    ('author', 'flair_text', 'author flair_text'),
    ('author', 'notflair_text', 'author ~flair_text'),
    ('author', 'flair_css_class', 'author flair_css_class'),
    ('author', 'notflair_css_class', 'author ~flair_css_class'),
    ('mod_action', 'action_reason', 'mod_action action_reason'),
)


def _invalid_regex_field(rule: Rule) -> Optional[str]:
    owners = {'rule': rule, 'author': rule.author, 'mod_action': rule.mod_action}
    for owner_name, field, label in _REGEX_FIELDS:
        owner = owners[owner_name]
        if owner is None:
            continue
        values = getattr(owner, field)
        options = getattr(owner, f'{field}_options')
        if not values or options is None or options.method != 'regex':
            continue
        flags = 0 if options.case_sensitive else re.IGNORECASE
        for value in values:
            try:
                re.compile(value, flags)
            except re.error:
                return label
    return None


def validate_rule(rule: Rule) -> Optional[str]:
    """
    Check a structurally valid rule for internal consistency.
    Returns a description of the first problem found, or None if the rule is valid.
    """
    author = rule.author

    if not rule.reply and not rule.private_reply and not rule.mute and not (author and author.is_moderator):
        return "No actions specified. Rule must either reply, private_reply or mute (or both)"

    invalid_field = _invalid_regex_field(rule)
    if invalid_field:
        return f"Invalid {invalid_field} regex"

    if rule.mod_action and not rule.mod_action.mod_action_type and not rule.mod_action.action_reason:
        return "When specifying a mod action, you must have an action type or action reason or both defined."

    if rule.unban and not (author and author.is_banned):
        return "You can only have an unban action if there is an author check for is_banned = true"

    if rule.moderators_exempt and author and author.is_moderator:
        return "You cannot have a rule where moderators are exempt but you're also checking that the author is a mod"

    if author and author.is_participant and author.is_moderator:
        return "You cannot specify is_participant and is_moderator to be true at the same time"

    if rule.mute is not None and rule.mute not in ALLOWED_MUTE_DAYS:
        return "Mute must be either 3, 7 or 28 days"

    return None
