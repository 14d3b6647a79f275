"""
Course Module Models

CourseSection holds the ordered membership of a section; CourseModule links a
plugin-owned activity instance to its course and section; and
CourseModuleCompletion records per-user progress on a course module.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from plugin_host.database import Base
from plugin_host.utils.clock import utcnow


class CourseSection(Base):
    __tablename__ = "course_sections"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    section = Column(Integer, default=0, nullable=False)  # position within the course
    name = Column(String(255), nullable=True)

    # Comma-delimited course module ids, see SectionSequence
    sequence = Column(Text, default="", nullable=False)

    visible = Column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("ix_course_sections_course_section", "course_id", "section", unique=True),)

    def __repr__(self) -> str:
        return f"<CourseSection(id={self.id}, course={self.course_id}, section={self.section})>"


class CourseModule(Base):
    __tablename__ = "course_modules"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    module = Column(String(40), nullable=False)  # module plugin name, e.g. "quiz"
    instance_id = Column(Integer, nullable=False)
    section_id = Column(Integer, ForeignKey("course_sections.id"), nullable=False)
    idnumber = Column(String(100), nullable=True)
    added = Column(DateTime, default=utcnow, nullable=False)

    # Display
    visible = Column(Boolean, default=True, nullable=False)
    visible_on_course_page = Column(Boolean, default=True, nullable=False)
    indent = Column(Integer, default=0, nullable=False)
    group_mode = Column(Integer, default=0, nullable=False)
    show_description = Column(Boolean, default=False, nullable=False)

    # Completion policy
    completion = Column(Integer, default=0, nullable=False)
    completion_view = Column(Boolean, default=False, nullable=False)
    completion_expected = Column(DateTime, nullable=True)

    availability = Column(Text, nullable=True)  # JSON encoded restriction tree

    __table_args__ = (Index("ix_course_modules_module_instance", "module", "instance_id"),)

    def __repr__(self) -> str:
        return f"<CourseModule(id={self.id}, module={self.module}, instance={self.instance_id})>"


class CourseModuleCompletion(Base):
    __tablename__ = "course_modules_completion"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    course_module_id = Column(Integer, ForeignKey("course_modules.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, nullable=False)
    completion_state = Column(Integer, default=0, nullable=False)
    viewed = Column(Boolean, default=False, nullable=False)
    time_modified = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_course_modules_completion_user_module", "user_id", "course_module_id", unique=True),
    )
