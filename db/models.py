# WORKFLOW: Database models for persisted compliance records.
# Used by: SqlComplianceStore, init_db()
# Models represent:
# 1. compliance_records - One row per record: indexed lookup columns + full JSON document
#
# Data flow: ComplianceRecord (pydantic) -> model_dump(mode="json") -> document column
# The lookup columns duplicate fields of the document so the store can find a record
# by its (batch, destination, buyer) key without parsing every document.

from sqlalchemy import Column, String, Integer, DateTime, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ComplianceRecordRow(Base):
    __tablename__ = "compliance_records"

    compliance_id = Column(String(32), primary_key=True, index=True)
    batch_id = Column(String(100), nullable=False)
    destination_country = Column(String(3), nullable=False)
    buyer_id = Column(String(100), nullable=False)
    compliance_status = Column(String(20), nullable=False)
    compliance_score = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    document = Column(JSON, nullable=False)

    __table_args__ = (
        Index('idx_record_key', 'batch_id', 'destination_country', 'buyer_id'),
        Index('idx_record_status', 'compliance_status'),
    )
