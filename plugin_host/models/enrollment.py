from sqlalchemy import Column, DateTime, Index, Integer

from plugin_host.database import Base
from plugin_host.utils.clock import utcnow


class UserEnrolment(Base):
    __tablename__ = "user_enrolments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    course_id = Column(Integer, nullable=False)
    status = Column(Integer, default=0, nullable=False)  # 0 = active, 1 = suspended
    time_start = Column(DateTime, nullable=True)
    time_end = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_user_enrolments_user_course", "user_id", "course_id", unique=True),)
