"""
Tests for database setup and session handling
"""

import unittest
from datetime import datetime, timedelta

import sys
import os
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker

from modmail_automator.database import ProcessedMessage, RulesBackup, create_db_engine, init_db, session_scope
from modmail_automator.database.connection import get_db_session

class TestDatabase(unittest.TestCase):
    def setUp(self):
        self.engine = create_db_engine('sqlite://')
        init_db(bind=self.engine)
        self.factory = sessionmaker(bind=self.engine)

    def tearDown(self):
        self.engine.dispose()

    def test_tables_created(self):
        """Test that init_db creates every table"""
        tables = inspect(self.engine).get_table_names()
        self.assertIn('processed_messages', tables)
        self.assertIn('rules_backups', tables)

    def test_session_scope_commits(self):
        """Test that a successful scope commits its work"""
        with session_scope(self.factory) as db:
            db.add(RulesBackup(content='---\nsubject: a\nreply: Hi', reason='Rules updated'))

        with session_scope(self.factory) as db:
            self.assertEqual(db.query(RulesBackup).count(), 1)

    def test_session_scope_rolls_back(self):
        """Test that an error inside the scope discards its work"""
        with self.assertRaises(RuntimeError):
            with session_scope(self.factory) as db:
                db.add(ProcessedMessage(
                    message_id='msg1',
                    conversation_id='conv1',
                    expires_at=datetime.utcnow() + timedelta(days=1),
                ))
                db.flush()
                raise RuntimeError('boom')

        with session_scope(self.factory) as db:
            self.assertEqual(db.query(ProcessedMessage).count(), 0)

    def test_get_db_session(self):
        """Test that the default session factory returns a session"""
        db = get_db_session()
        try:
            self.assertTrue(hasattr(db, 'query'))
        finally:
            db.close()

if __name__ == '__main__':
    unittest.main()
