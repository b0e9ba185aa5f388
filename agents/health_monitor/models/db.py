from sqlalchemy import Column, BigInteger, Integer, String, Boolean, Index
from shared.models.base import Base, TimestampMixin


class MonitoredAccountRow(Base, TimestampMixin):
    __tablename__ = "monitored_accounts"

    address = Column(String(44), primary_key=True)  # base58 wallet address
    chat_id = Column(BigInteger, nullable=False)
    last_health = Column(Integer, nullable=False)
    notify_at_first_threshold = Column(Boolean, nullable=False, default=True)
    notify_at_second_threshold = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_monitored_chat", "chat_id"),
    )
