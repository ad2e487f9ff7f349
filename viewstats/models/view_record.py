"""View record model for view tracking."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text

from viewstats.database import Base
from viewstats.utils.clock import utcnow


class ViewRecord(Base):
    """
    One accepted view of a resource.

    Rows are never updated or deleted by this service. There is no unique
    constraint: the same identity may view a resource again once the dedup
    window has passed.
    """

    __tablename__ = "view_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    resource_type = Column(String(20), nullable=False)
    resource_id = Column(String(36), nullable=False)
    # Owner of the viewed resource; for profiles this equals resource_id
    owner_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    viewer_user_id = Column(String(36), nullable=True)
    ip_address = Column(String(45), nullable=True)
    country_code = Column(String(2), nullable=True)
    country_name = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    region = Column(String(10), nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_view_records_resource_created", "resource_type", "resource_id", "created_at"),
        Index("idx_view_records_owner_created", "owner_user_id", "created_at"),
        Index("idx_view_records_country_created", "country_code", "created_at"),
        Index("idx_view_records_dedup_viewer", "resource_type", "resource_id", "viewer_user_id", "created_at"),
        Index("idx_view_records_dedup_ip", "resource_type", "resource_id", "ip_address", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ViewRecord(id={self.id}, {self.resource_type}:{self.resource_id}, viewer={self.viewer_user_id})>"
