# WORKFLOW: Database models for the POS sales store.
# Used by: Ingestion pipeline, job queue, report queries, API endpoints
# Models represent:
# 1. raw_transactions - fact rows, one per distinct canonical record (content_hash unique)
# 2. subdepartments - dimension of sub-department numbers and descriptions
# 3. upload_jobs - durable queue of asynchronous upload jobs
# 4. upload_meta - append-only audit trail of completed ingestions
#
# Data flow: CSV/XLSB -> ETL -> raw_transactions (+ subdepartments, upload_meta) -> API responses

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class RawTransaction(Base):
    __tablename__ = "raw_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date_iso = Column(String(10), nullable=False)
    item_code = Column(String(13), nullable=False)
    item_brand = Column(Text, nullable=False, default="")
    item_pos_desc = Column(Text, nullable=False, default="")
    subdept_no = Column(Integer, nullable=False, default=0)
    subdept_desc = Column(Text, nullable=False, default="")
    category_no = Column(Integer, nullable=False, default=0)
    category_desc = Column(Text, nullable=False, default="")
    vendor_id = Column(String(64), nullable=False, default="")
    vendor_name = Column(Text, nullable=False, default="")
    units_sum = Column(Float, nullable=False, default=0.0)
    amount_sum = Column(Float, nullable=False, default=0.0)
    weight_volume_sum = Column(Float, nullable=False, default=0.0)
    bl_profit = Column(Float, nullable=False, default=0.0)
    bl_margin = Column(Float, nullable=False, default=0.0)
    bl_rank = Column(Float, nullable=False, default=0.0)
    bl_ratio = Column(Float, nullable=False, default=0.0)
    prop_rank = Column(Float, nullable=False, default=0.0)
    prop_ratio = Column(Float, nullable=False, default=0.0)
    source_filename = Column(Text, nullable=False, default="")
    content_hash = Column(String(64), nullable=False, unique=True)

    __table_args__ = (
        Index('idx_txn_date', 'date_iso'),
        Index('idx_txn_item_date', 'item_code', 'date_iso'),
        Index('idx_txn_subdept_date', 'subdept_no', 'date_iso'),
    )


class Subdepartment(Base):
    __tablename__ = "subdepartments"

    subdept_no = Column(Integer, primary_key=True, autoincrement=False)
    subdept_desc = Column(Text, nullable=False)


class UploadJob(Base):
    __tablename__ = "upload_jobs"

    id = Column(String(64), primary_key=True)
    original_name = Column(Text, nullable=False)
    tmp_path = Column(Text, nullable=False)
    size_bytes = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="queued")  # queued | processing | done | error
    result = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    queued_at = Column(DateTime(timezone=True), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_jobs_status_queued', 'status', 'queued_at'),
    )


class UploadMeta(Base):
    __tablename__ = "upload_meta"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_name = Column(Text, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)
    rows_parsed = Column(Integer, nullable=False, default=0)
    inserted = Column(Integer, nullable=False, default=0)
    ignored = Column(Integer, nullable=False, default=0)
