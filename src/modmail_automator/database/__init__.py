"""
Database package for the modmail autoresponder
"""
from .connection import create_db_engine, get_db_session, init_db, session_scope
from .models import Base, ProcessedMessage, RulesBackup

__all__ = [
    'Base',
    'ProcessedMessage',
    'RulesBackup',
    'init_db',
    'get_db_session',
    'create_db_engine',
    'session_scope',
]
