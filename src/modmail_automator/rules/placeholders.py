"""
Placeholder substitution for reply, private reply and flair text
"""
from datetime import datetime
import re
from typing import Optional

from modmail_automator.i18n import format_distance_to_now, format_relative, language_from_string

from .engine import Captures

MATCH_PLACEHOLDER_REGEX = re.compile(r"\{\{match(?:-(subject|body))?(?:-(\d+))?\}\}")

_MARKDOWN_SPECIAL = re.compile(r"([*#/()\[\]<>_])")


def markdown_escape(text: str) -> str:
    """Backslash-escape characters that would otherwise be read as markdown"""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", text)


def _match_text(found: re.Match, captures: Captures) -> str:
    side, number = found.group(1), found.group(2)
    if side == 'subject':
        values = captures.subject_match
    elif side == 'body':
        values = captures.body_match
    else:
        values = captures.subject_match or captures.body_match

    if not values:
        return ''

    index = int(number) - 1 if number else 0
    if index < 0 or index >= len(values):
        return ''
    return values[index]


def apply_match_placeholders(text: str, captures: Captures) -> str:
    """Replace {{match}}, {{match-subject-2}} and friends with captured text

    Substituted text is not rescanned, so captures containing placeholder
    syntax are left as they are.
    """
    return MATCH_PLACEHOLDER_REGEX.sub(lambda found: _match_text(found, captures), text)


def apply_reply_placeholders(
    text: str,
    captures: Captures,
    username: str,
    subreddit_name: str,
    locale: str = 'en',
    post_string: Optional[str] = None,
    comment_string: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Replace every placeholder supported in reply and private reply text"""
    text = text.replace("{{author}}", markdown_escape(username))
    text = text.replace("{{subreddit}}", markdown_escape(subreddit_name))

    language = None
    if captures.mod_action_date or captures.mod_action_target_kind:
        language = language_from_string(locale)

    if captures.mod_action_date and language:
        text = text.replace("{{mod_action_timespan_to_now}}", format_distance_to_now(captures.mod_action_date, now, locale))
        text = text.replace("{{mod_action_relative_time}}", format_relative(captures.mod_action_date, now, locale))

    if captures.mod_action_target_permalink:
        text = text.replace("{{mod_action_target_permalink}}", captures.mod_action_target_permalink)

    if captures.mod_action_target_kind and language:
        if captures.mod_action_target_kind == 'post':
            target_kind = post_string or language.post_word
        else:
            target_kind = comment_string or language.comment_word
        text = text.replace("{{mod_action_target_kind}}", target_kind)

    return apply_match_placeholders(text, captures)
