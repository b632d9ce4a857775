"""SQLAlchemy ORM models for the HackStack database."""

from backend.models.base import Base
from backend.models.card import CardRecord

__all__ = ["Base", "CardRecord"]
