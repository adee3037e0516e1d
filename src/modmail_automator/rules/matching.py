"""
Text matching for subject, body, author name, flair and mod log reason checks
"""
import logging
import re
from typing import List, Optional

from .schema import DEFAULT_SEARCH_OPTIONS, SearchOptions

logger = logging.getLogger(__name__)

# Sentinel returned when a negated check passes, so placeholders still have a value.
EMPTY_MATCH = ['']


def _includes(text: str, candidate: str) -> bool:
    return candidate in text


def _includes_word(text: str, candidate: str) -> bool:
    return re.search(rf"\b{re.escape(candidate)}\b", text) is not None


def _starts_with(text: str, candidate: str) -> bool:
    return text.startswith(candidate)


def _ends_with(text: str, candidate: str) -> bool:
    return text.endswith(candidate)


def _full_exact(text: str, candidate: str) -> bool:
    return text == candidate


# Search method to literal matcher mapping. Regex is handled separately.
MATCHERS = {
    'includes': _includes,
    'includes-word': _includes_word,
    'starts-with': _starts_with,
    'ends-with': _ends_with,
    'full-exact': _full_exact,
}


def _normalise_case(text: str, case_sensitive: bool) -> str:
    return text if case_sensitive else text.lower()


def _regex_match(text: str, patterns: List[str], case_sensitive: bool) -> Optional[List[str]]:
    flags = 0 if case_sensitive else re.IGNORECASE
    for pattern in patterns:
        found = re.search(pattern, text, flags)
        if found:
            return [found.group(0)] + [group or '' for group in found.groups()]
    return None


def _literal_match(text: str, candidates: List[str], method: str, case_sensitive: bool) -> Optional[List[str]]:
    matcher = MATCHERS.get(method)
    if matcher is None:
        raise ValueError(f"Unexpected search method {method}")

    haystack = _normalise_case(text, case_sensitive)
    for candidate in candidates:
        if matcher(haystack, _normalise_case(candidate, case_sensitive)):
            return [candidate]
    return None


def check_text_match(
    text: str,
    candidates: Optional[List[str]],
    options: Optional[SearchOptions] = None,
) -> Optional[List[str]]:
    """
    Check text against a list of candidate strings.

    Returns the matched text as a list (the whole match first, followed by any
    regex groups), or None if the check is not satisfied. A negated check
    returns [''] when nothing matched and None when something did, so a truthy
    result always means the check passed.
    """
    options = options or DEFAULT_SEARCH_OPTIONS
    negate = bool(options.negate)

    if not candidates:
        return list(EMPTY_MATCH) if negate else None

    case_sensitive = bool(options.case_sensitive)
    if options.method == 'regex':
        result = _regex_match(text, candidates, case_sensitive)
    else:
        result = _literal_match(text, candidates, options.method, case_sensitive)

    logger.debug(f"Text match ({options.method}, negate={negate}) of {candidates!r} -> {result!r}")

    if negate:
        return None if result else list(EMPTY_MATCH)
    return result
