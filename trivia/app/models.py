"""SQLAlchemy ORM models."""
from sqlalchemy import Column, Integer, String, Text, UniqueConstraint

from .db import Base


class PlayerState(Base):
    """Stores one serialized PlayerRecord per player."""
    __tablename__ = "player_state"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(String, unique=True, index=True, nullable=False)
    schema_version = Column(Integer, nullable=False, default=1)
    payload_json = Column(Text, nullable=False)  # camelCase PlayerRecord JSON
    updated_ts_utc = Column(String, nullable=False)


class DailyQuestion(Base):
    """One question of the bank, scheduled for a date and a slot within it."""
    __tablename__ = "daily_question"
    __table_args__ = (
        UniqueConstraint("question_date", "slot", name="uq_daily_question_date_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    question_date = Column(String, index=True, nullable=False)  # YYYY-MM-DD
    day = Column(Integer, nullable=False)
    slot = Column(Integer, nullable=False, default=0)
    category = Column(String, nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(String, nullable=False)
    alternate_answers_json = Column(Text, nullable=False, default="[]")
