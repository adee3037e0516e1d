"""
Application settings, rules validation and rules backup
"""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from .database.models import RulesBackup
from .i18n import language_from_string
from .rules.parser import parse_rules

logger = logging.getLogger(__name__)

DEFAULT_SIGNOFF = (
    "*This is an automatic response. If you need more assistance, please reply to this message "
    "and a human moderator will review your request.*"
)
DEFAULT_RULES_FILE = 'config/rules.yaml'

ENV_PREFIX = 'MODMAIL_'


class AppSettings(BaseModel):
    """Settings the moderators control"""
    rules: Optional[str] = None
    backup_rules: bool = False
    signoff: Optional[str] = DEFAULT_SIGNOFF
    include_signoff_for_mods: bool = True
    seconds_delay_before_send: int = Field(default=0, ge=0)
    locale: str = 'en'
    post_string: Optional[str] = None
    comment_string: Optional[str] = None

    @field_validator('locale')
    @classmethod
    def validate_locale(cls, v: str) -> str:
        language_from_string(v)
        return v

    @classmethod
    def from_env(cls, rules_file: Optional[str] = None) -> 'AppSettings':
        """Build settings from MODMAIL_* environment variables and the rules file"""
        load_dotenv()

        values = {}
        for field_name in cls.model_fields:
            env_value = os.getenv(ENV_PREFIX + field_name.upper())
            if env_value is not None:
                values[field_name] = env_value

        rules_path = Path(rules_file or os.getenv('RULES_FILE', DEFAULT_RULES_FILE))
        if 'rules' not in values and rules_path.exists():
            values['rules'] = rules_path.read_text(encoding='utf-8')
            logger.debug(f"Loaded rules from {rules_path}")

        return cls.model_validate(values)


def validate_rules_setting(text: Optional[str]) -> Optional[str]:
    """Validate rules text entered by a moderator, returning an error message or None"""
    try:
        parse_rules(text)
    except ValueError as e:
        return f"Error parsing rules: {e}"
    return None


def save_rules_backup(db: Session, settings: AppSettings, username: Optional[str] = None) -> Optional[RulesBackup]:
    """Store a copy of the current rules if backups are on and the rules have changed"""
    current_rules = settings.rules
    if not current_rules or not settings.backup_rules:
        return None

    latest = db.query(RulesBackup).order_by(RulesBackup.id.desc()).first()
    if latest and latest.content.strip() == current_rules.strip():
        logger.debug("Rules unchanged since last backup")
        return None

    reason = f"Rules updated by /u/{username}" if username else "Rules updated"
    backup = RulesBackup(content=current_rules, reason=reason)
    db.add(backup)
    db.commit()
    logger.info(f"Saved rules backup: {reason}")
    return backup
