from sqlalchemy import Boolean, Column, Float, Index, Integer, BigInteger, String

from ..db import Base


class SyncJob(Base):
    __tablename__ = "sync_jobs"

    job_id = Column(String(128), primary_key=True)
    tenant_id = Column(Integer, nullable=False, default=1)
    user_id = Column(String(128), nullable=True)
    state = Column(String(32), nullable=False, default="RUNNING")  # RUNNING|PAUSED|PAUSED_RATE_LIMIT|COMPLETED|FAILED
    processed = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    completed = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    current_product_id = Column(String(128), nullable=True)
    current_step = Column(String(255), nullable=True)
    retry_at = Column(BigInteger, nullable=True)  # epoch ms
    last_retry_after = Column(Float, nullable=True)  # seconds
    last_event_at = Column(BigInteger, nullable=False)  # epoch ms
    updated_at = Column(BigInteger, nullable=False)  # epoch ms
    created_at = Column(BigInteger, nullable=False)  # epoch ms
    total_requests = Column(Integer, nullable=False, default=0)
    requests_last60s = Column(Integer, nullable=False, default=0)
    error429_count = Column(Integer, nullable=False, default=0)
    avg_latency_ms = Column(Integer, nullable=False, default=0)
    throttle_min_delay_ms = Column(Integer, nullable=False, default=1000)
    throttle_concurrency = Column(Integer, nullable=False, default=100)
    stall_detected = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_sync_jobs_state_updated", "state", "updated_at"),
    )
