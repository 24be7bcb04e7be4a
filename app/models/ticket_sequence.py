# models/ticket_sequence.py
from sqlalchemy import Column, Integer

from app.db.base_class import Base


class TicketSequence(Base):
    """Per-year counter row behind INQ-{year}-{NNN}; only ever incremented."""
    __tablename__ = "ticket_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_number = Column(Integer, nullable=False, default=0)
