from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from plugin_host.database import Base
from plugin_host.utils.clock import utcnow


class GradeItem(Base):
    """Grade book column created for a graded activity instance."""

    __tablename__ = "grade_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    course_module_id = Column(Integer, nullable=True)
    item_type = Column(String(30), default="mod", nullable=False)
    item_module = Column(String(30), nullable=False)
    item_instance = Column(Integer, nullable=False)
    item_name = Column(String(255), nullable=True)
    grade_type = Column(Integer, default=1, nullable=False)  # 1 = value
    grade_max = Column(Float, default=100.0, nullable=False)
    grade_min = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_grade_items_module_instance", "course_id", "item_module", "item_instance"),)
