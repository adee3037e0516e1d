"""
Parsing of YAML rule configuration into validated Rule objects.

Rules are written as a stream of YAML documents, one rule per document:

    ---
    ~subject (includes-word, case-sensitive): ["ban", "appeal"]
    author:
        account_age: "< 7 days"
    reply: Hi {{author}}, thanks for writing in.
    ---

Parsing happens in two passes. The first rewrites shorthand keys such as
"~subject (regex)" into their canonical field plus a "<field>_options"
object. The second validates the canonical mapping against the pydantic
schema and then checks each rule for internal consistency. Any failure
aborts the whole parse.
"""
from dataclasses import dataclass
import logging
import re
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .schema import SEARCH_METHODS, Rule, validate_rule

logger = logging.getLogger(__name__)

CASE_SENSITIVE_TOKENS = ('case-sensitive', 'case_sensitive')

_KEY_REGEX = re.compile(r"^(~)?([a-z_+]+)(?:\s*\(([\w\s,-]*)\))?$")


class RuleParseError(ValueError):
    """Raised when rule configuration is malformed or inconsistent"""


@dataclass(frozen=True)
class FieldGrammar:
    """How a shorthand key maps onto a canonical rule field"""
    canonical: str
    negatable: bool = True
    search_method: Optional[str] = None


ROOT_GRAMMAR = {
    'subject': FieldGrammar('subject'),
    'body': FieldGrammar('body'),
    'subject+body': FieldGrammar('subjectandbody'),
    'body+subject': FieldGrammar('subjectandbody'),
    # Legacy spellings from before search options existed
    'subject_regex': FieldGrammar('subject', negatable=False, search_method='regex'),
    'body_regex': FieldGrammar('body', negatable=False, search_method='regex'),
}

AUTHOR_GRAMMAR = {
    'name': FieldGrammar('name'),
    'flair_text': FieldGrammar('flair_text'),
    'flair_css_class': FieldGrammar('flair_css_class'),
}

MOD_ACTION_GRAMMAR = {
    'action_reason': FieldGrammar('action_reason', negatable=False),
}


@dataclass(frozen=True)
class ParsedKey:
    """A raw key resolved to its canonical field name and search options"""
    field: str
    options: Optional[Dict[str, Any]] = None


def parse_field_key(key: Any, grammar: Dict[str, FieldGrammar]) -> ParsedKey:
    """
    Resolve one raw key against a scope's grammar.

    Keys that are not shorthand for a known field are returned unchanged so
    that schema validation can report them.
    """
    if not isinstance(key, str):
        return ParsedKey(key)

    matches = _KEY_REGEX.match(key)
    if not matches:
        return ParsedKey(key)

    negate = matches.group(1) is not None
    spec = grammar.get(matches.group(2))
    if spec is None or (negate and not spec.negatable):
        return ParsedKey(key)

    search_method = spec.search_method
    case_sensitive = False
    option_text = matches.group(3)
    if option_text is not None:
        for token in re.split(r"[\s,]+", option_text.strip()):
            if not token:
                continue
            if token in CASE_SENSITIVE_TOKENS:
                case_sensitive = True
            elif token in SEARCH_METHODS:
                if search_method and search_method != token:
                    raise RuleParseError(f"Conflicting search methods in '{key}'")
                search_method = token
            else:
                raise RuleParseError(f"Unknown search option '{token}' in '{key}'")

    field = ('not' if negate else '') + spec.canonical
    if not (search_method or case_sensitive or negate):
        return ParsedKey(field)

    return ParsedKey(field, {
        'search_method': search_method or 'includes',
        'case_sensitive': case_sensitive,
        'negate': negate,
    })


def normalise_scope(node: Dict[Any, Any], grammar: Dict[str, FieldGrammar]) -> Dict[Any, Any]:
    """Rewrite one mapping's shorthand keys into canonical fields and options"""
    normalised: Dict[Any, Any] = {}
    for key, value in node.items():
        parsed = parse_field_key(key, grammar)
        if parsed.field in normalised:
            raise RuleParseError(f"'{parsed.field}' is defined more than once (via '{key}')")
        normalised[parsed.field] = value

        if parsed.options is not None:
            options_key = f'{parsed.field}_options'
            if options_key in normalised or options_key in node:
                raise RuleParseError(f"'{options_key}' is defined more than once (via '{key}')")
            normalised[options_key] = parsed.options
            if key != parsed.field:
                logger.debug(f"Normalised '{key}' to {parsed.field} with options {parsed.options}")
    return normalised


def normalise_rule(document: Dict[Any, Any]) -> Dict[Any, Any]:
    """Normalise shorthand keys at the rule root and in the author and mod_action blocks"""
    rule = normalise_scope(document, ROOT_GRAMMAR)
    if isinstance(rule.get('author'), dict):
        rule['author'] = normalise_scope(rule['author'], AUTHOR_GRAMMAR)
    if isinstance(rule.get('mod_action'), dict):
        rule['mod_action'] = normalise_scope(rule['mod_action'], MOD_ACTION_GRAMMAR)
    return rule


class _UniqueKeyLoader(yaml.SafeLoader):
    """Safe loader that refuses duplicate keys instead of silently keeping the last one

    Plain scalars are resolved with the YAML 1.2 core schema, so replies
    such as yes, off, 12:30 or 2024-01-01 stay strings.
    """

    yaml_implicit_resolvers: Dict[Any, Any] = {}

    def construct_mapping(self, node, deep=False):
        seen = []
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    'while constructing a mapping', node.start_mark,
                    f'found duplicate key {key!r}', key_node.start_mark,
                )
            seen.append(key)
        return super().construct_mapping(node, deep=deep)


_UniqueKeyLoader.add_implicit_resolver(
    'tag:yaml.org,2002:bool',
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list('tTfF'),
)
_UniqueKeyLoader.add_implicit_resolver(
    'tag:yaml.org,2002:int',
    re.compile(r"^(?:[-+]?(?:0|[1-9][0-9]*)|0x[0-9a-fA-F]+)$"),
    list('-+0123456789'),
)
_UniqueKeyLoader.add_implicit_resolver(
    'tag:yaml.org,2002:float',
    re.compile(r"^(?:[-+]?(?:\.[0-9]+|[0-9]+\.[0-9]*)(?:[eE][-+]?[0-9]+)?|[-+]?\.(?:inf|Inf|INF)|\.(?:nan|NaN|NAN))$"),
    list('-+.0123456789'),
)
_UniqueKeyLoader.add_implicit_resolver(
    'tag:yaml.org,2002:null',
    re.compile(r"^(?:~|null|Null|NULL|)$"),
    ['~', 'n', 'N', ''],
)


def _rule_label(index: int, document: Dict[Any, Any]) -> str:
    name = document.get('rule_friendly_name')
    if isinstance(name, str) and name:
        return f'Rule {index} ("{name}")'
    return f'Rule {index}'


def _describe_validation_error(error: ValidationError) -> str:
    """Pick the most useful error, preferring unknown properties"""
    errors = error.errors()
    extra = next((item for item in errors if item['type'] == 'extra_forbidden'), None)
    if extra:
        parent = '.'.join(str(part) for part in extra['loc'][:-1]) or 'rule'
        return f"{parent} has invalid property {extra['loc'][-1]}"

    first = errors[0]
    location = '.'.join(str(part) for part in first['loc']) or 'rule'
    return f"{location}: {first['msg']}"


def load_documents(text: str) -> List[Dict[Any, Any]]:
    """Load every non-empty YAML document from the text"""
    try:
        documents = list(yaml.load_all(text, Loader=_UniqueKeyLoader))
    except yaml.YAMLError as e:
        raise RuleParseError(f"Invalid YAML: {e}") from e

    documents = [document for document in documents if document is not None]
    for index, document in enumerate(documents, start=1):
        if not isinstance(document, dict):
            raise RuleParseError(f"Rule {index}: expected a mapping of rule properties")
    return documents


def parse_rules(text: Optional[str]) -> List[Rule]:
    """
    Parse YAML rule configuration.

    Raises RuleParseError describing the first problem found; no rules are
    returned unless every rule is valid.
    """
    if not text or not text.strip():
        return []

    documents = load_documents(text)

    rules: List[Rule] = []
    for index, document in enumerate(documents, start=1):
        try:
            rules.append(Rule.model_validate(normalise_rule(document)))
        except RuleParseError as e:
            raise RuleParseError(f"{_rule_label(index, document)}: {e}") from e
        except ValidationError as e:
            raise RuleParseError(f"{_rule_label(index, document)}: {_describe_validation_error(e)}") from e

    for index, (document, rule) in enumerate(zip(documents, rules), start=1):
        problem = validate_rule(rule)
        if problem:
            raise RuleParseError(f"{_rule_label(index, document)}: {problem}")

    logger.debug(f"Parsed {len(rules)} rules")
    return rules
