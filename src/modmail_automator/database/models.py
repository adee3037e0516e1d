"""
Database models for the modmail autoresponder
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class ProcessedMessage(Base):
    """Modmail messages already handled, so a redelivered event is not answered twice"""
    __tablename__ = 'processed_messages'

    id = Column(Integer, primary_key=True)
    message_id = Column(String(255), nullable=False, unique=True)
    conversation_id = Column(String(255))
    processed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)

class RulesBackup(Base):
    """Snapshot of the rules text, saved whenever it changes"""
    __tablename__ = 'rules_backups'

    id = Column(Integer, primary_key=True)
    content = Column(Text, nullable=False)
    reason = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
