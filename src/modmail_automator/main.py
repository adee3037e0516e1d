#!/usr/bin/env python3
"""
Modmail Automator - command line entry point

Validates rule files, backs them up, and dry-runs a modmail message against
the rules offline (no moderation API, so ban, approved user, mod log and
subreddit visibility checks are skipped).
"""
import argparse
import logging
import sys

import structlog

from modmail_automator.database import init_db, session_scope
from modmail_automator.autoresponder import format_debug_output
from modmail_automator.modmail.models import ModmailMessage
from modmail_automator.rules import RuleParseError, RulesEngine, parse_rules
from modmail_automator.settings import AppSettings, save_rules_backup, validate_rules_setting

# Configure logging
logging.basicConfig(level=logging.INFO)  # Only show important info
logger = structlog.get_logger()

# Disable debug logging for specific modules
logging.getLogger('modmail_automator.rules.matching').setLevel(logging.INFO)
logging.getLogger('modmail_automator.rules.engine').setLevel(logging.INFO)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description='Modmail Automator')
    parser.add_argument('--rules', help='Path to the YAML rules file (default: $RULES_FILE or config/rules.yaml)')
    parser.add_argument('--validate', action='store_true', help='Validate the rules file and exit')
    parser.add_argument('--backup', action='store_true', help='Save a backup of the rules if they have changed')
    parser.add_argument('--user', help='Moderator name recorded with a backup')

    dry_run = parser.add_argument_group('dry run')
    dry_run.add_argument('--subject', help='Subject of the modmail to test')
    dry_run.add_argument('--body', default='', help='Body of the modmail to test')
    dry_run.add_argument('--author', default='someuser', help='Participant username')
    dry_run.add_argument('--subreddit', default='testsub', help='Subreddit name')
    dry_run.add_argument('--moderator', action='store_true', help='Message is sent by a moderator')
    dry_run.add_argument('--reply', action='store_true', help='Message is a reply rather than the first message')
    dry_run.add_argument('--first-user-reply', action='store_true', help="Message is the participant's first reply")
    return parser.parse_args(argv)

def dry_run(args, settings: AppSettings) -> int:
    """Evaluate one message against the rules and print the decision"""
    rules = parse_rules(settings.rules)
    is_first_message = not (args.reply or args.first_user_reply)
    message = ModmailMessage(
        conversation_id='dry-run',
        message_id='dry-run',
        subreddit_name=args.subreddit,
        subject=args.subject,
        body=args.body,
        participant_name=args.author,
        author_name=args.author,
        author_is_moderator=args.moderator,
        author_is_participant=not args.moderator,
        is_first_message=is_first_message,
        is_first_user_reply=args.first_user_reply,
    )

    engine = RulesEngine()
    matched, results = engine.process_message(rules, message)
    for result in results:
        print(f"{result.rule.rule_friendly_name or 'Unnamed rule'} (priority {result.priority}): "
              f"{'matched' if result.matched else result.reason}")

    debug_output = format_debug_output(results)
    if debug_output:
        print()
        print(debug_output)

    if matched is None:
        print("No rules matched.")
        return 1

    print()
    print("Actions: " + (", ".join(matched.action.describe()) or "none"))
    return 0

def main(argv=None) -> int:
    """Main entry point for Modmail Automator"""
    try:
        args = parse_args(argv)

        # Reads .env and MODMAIL_* variables
        settings = AppSettings.from_env(rules_file=args.rules)

        if args.validate:
            problem = validate_rules_setting(settings.rules)
            if problem:
                logger.error("Rules are invalid", error=problem)
                return 1
            logger.info("Rules are valid", count=len(parse_rules(settings.rules)))
            return 0

        if args.backup:
            init_db()
            with session_scope() as db:
                backup = save_rules_backup(db, settings.model_copy(update={"backup_rules": True}), username=args.user)
            logger.info("Backup complete" if backup else "Backup not needed")
            return 0

        if args.subject is not None:
            return dry_run(args, settings)

        logger.error("Nothing to do: pass --validate, --backup or --subject")
        return 2
    except RuleParseError as e:
        logger.error("Error parsing rules", error=str(e))
        return 1
    except Exception as e:
        logger.error("Error running Modmail Automator", error=str(e))
        raise

if __name__ == "__main__":
    sys.exit(main())
