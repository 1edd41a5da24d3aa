from sqlalchemy import JSON, BigInteger, Column, Float, Index, Integer, String, Text

from ..db import Base


class SyncEvent(Base):
    __tablename__ = "sync_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(128), nullable=False)
    timestamp_ms = Column(BigInteger, nullable=False)
    timestamp = Column(String(40), nullable=False)  # ISO-8601 UTC
    workspace_id = Column(Integer, nullable=False, default=1)
    user_id = Column(String(128), nullable=True)
    product_id = Column(String(128), nullable=True)
    listing_id = Column(String(128), nullable=True)
    operation = Column(String(64), nullable=False, default="unknown")
    http_method = Column(String(16), nullable=False, default="GET")
    endpoint_path = Column(String(512), nullable=False, default="")
    status_code = Column(Integer, nullable=True)  # NULL = transport failure, no response
    duration_ms = Column(Integer, nullable=False, default=0)
    request_id = Column(String(128), nullable=True)
    retry_after_seconds = Column(Float, nullable=True)
    rate_limit_headers = Column(JSON, nullable=True)
    error_code = Column(String(128), nullable=True)
    error_message = Column(Text, nullable=True)
    payload_summary = Column(Text, nullable=True)
    response_snippet = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_sync_events_job_ts", "job_id", "timestamp_ms"),
    )
