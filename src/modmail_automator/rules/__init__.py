"""
Rules package for the modmail autoresponder
"""
from .engine import Captures, RuleAction, RuleMatched, RuleNotMatched, RulesEngine
from .parser import RuleParseError, parse_rules
from .placeholders import apply_match_placeholders, apply_reply_placeholders
from .schema import Rule, validate_rule

__all__ = [
    'RulesEngine',
    'RuleAction',
    'RuleMatched',
    'RuleNotMatched',
    'Captures',
    'Rule',
    'RuleParseError',
    'parse_rules',
    'validate_rule',
    'apply_match_placeholders',
    'apply_reply_placeholders',
]
