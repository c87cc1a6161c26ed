from sqlalchemy import Boolean, Column, Index, Integer, Text, false

from shortener_core.database.connection import Base
from shortener_core.models.record import URLRecord


class URLRow(Base):
    """
    Row of the ``urls`` table.

    The unique constraint on ``short_url`` is what detects collisions for
    the relational backend; application code never pre-checks it.
    """
    __tablename__ = "urls"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    short_url = Column(Text, nullable=False, unique=True)
    original_url = Column(Text, nullable=False)
    is_deleted = Column(Boolean, default=False, server_default=false())

    __table_args__ = (
        Index("idx_user_short_url", "user_id", "short_url"),
    )

    @classmethod
    def from_record(cls, record: URLRecord) -> "URLRow":
        return cls(
            user_id=record.owner_id,
            short_url=record.id,
            original_url=record.original_url,
            is_deleted=record.deleted,
        )

    def to_record(self) -> URLRecord:
        return URLRecord(
            id=self.short_url,
            original_url=self.original_url,
            owner_id=self.user_id,
            deleted=bool(self.is_deleted),
        )
