"""
Languages used for mod action placeholders in replies

Each language carries the Babel locale that words and formats elapsed and
relative times, plus the words used for posts and comments.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from babel.dates import format_date, format_time, format_timedelta, get_datetime_format


@dataclass(frozen=True)
class Language:
    """A supported output language"""
    language_name: str
    iso_code: str
    babel_locale: str
    post_word: str
    comment_word: str


LANGUAGES: List[Language] = [
    Language("English (US)", "en", "en_US", "post", "comment"),
    Language("English (UK)", "enGB", "en_GB", "post", "comment"),
    Language("dansk", "da", "da", "indlæg", "kommentar"),
    Language("Deutsch", "de", "de", "Beitrag", "Kommentar"),
    Language("español", "es", "es", "publicación", "comentario"),
    Language("suomi", "fi", "fi", "viesti", "kommentti"),
    Language("français", "fr", "fr", "post", "commentaire"),
    Language("hrvatski", "hr", "hr", "objava", "komentar"),
    Language("italiano", "it", "it", "post", "inviato"),
    Language("Nederlands", "nl", "nl", "post", "reactie"),
    Language("Bokmål", "nb", "nb", "post", "kommentar"),
    Language("polski", "pl", "pl", "post", "komentarz"),
    Language("português", "pt", "pt", "post", "comentário"),
    Language("română", "ro", "ro", "post", "comentariu"),
    Language("русский", "ru", "ru", "пост", "комментарий"),
    Language("Svenska", "sv", "sv", "inlägg", "kommentar"),
    Language("Türkçe", "tr", "tr", "gönder", "yorum"),
]

# A week either side of now is described by weekday, anything further by date
RELATIVE_WEEKDAY_DAYS = 6


def language_from_string(iso_code: str) -> Language:
    """Look up a supported language by its code"""
    for language in LANGUAGES:
        if language.iso_code == iso_code:
            return language
    raise ValueError(f"Language code {iso_code} not supported")


def _now_like(value: datetime) -> datetime:
    if value.tzinfo is None:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    return datetime.now(timezone.utc)


def format_distance(earlier: datetime, later: datetime, locale: str = 'en') -> str:
    """Describe the time between two dates in words, e.g. "3 hours" or "3 Stunden" """
    language = language_from_string(locale)
    return format_timedelta(later - earlier, granularity='minute', locale=language.babel_locale)


def format_distance_to_now(value: datetime, now: Optional[datetime] = None, locale: str = 'en') -> str:
    return format_distance(value, now or _now_like(value), locale)


def format_relative(value: datetime, now: Optional[datetime] = None, locale: str = 'en') -> str:
    """Describe a date relative to now, e.g. "Tuesday, 8:00 AM" within a week, else "May 1, 2024" """
    babel_locale = language_from_string(locale).babel_locale
    now = now or _now_like(value)
    days = (value.date() - now.date()).days

    if abs(days) > RELATIVE_WEEKDAY_DAYS:
        return format_date(value, format='medium', locale=babel_locale)

    weekday = format_date(value, format='EEEE', locale=babel_locale)
    clock = format_time(value, format='short', locale=babel_locale)
    pattern = get_datetime_format('short', locale=babel_locale)
    return pattern.replace("'", "").replace('{0}', clock).replace('{1}', weekday)


def supported_language_codes() -> List[str]:
    return [language.iso_code for language in LANGUAGES]
