from .block import BlockInstance, BlockPosition
from .course_module import CourseModule, CourseModuleCompletion, CourseSection
from .enrollment import UserEnrolment
from .grade import GradeItem
from .plugin_state import Capability, PluginEnabled, PluginSetting, PluginVersion

__all__ = [
    "BlockInstance",
    "BlockPosition",
    "Capability",
    "CourseModule",
    "CourseModuleCompletion",
    "CourseSection",
    "GradeItem",
    "PluginEnabled",
    "PluginSetting",
    "PluginVersion",
    "UserEnrolment",
]
