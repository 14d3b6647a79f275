from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from plugin_host.constants import CompletionState


class ModuleInstanceCreate(BaseModel):
    module: str = Field(..., description="Name of an enabled module plugin, e.g. quiz.")
    course_id: int
    section_id: int
    data: dict[str, Any] = Field(default_factory=dict, description="Plugin-specific instance fields.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"module": "quiz", "course_id": 2, "section_id": 5, "data": {"name": "Week 1 quiz", "grade": 10}}
        }
    )


class ModuleInstanceUpdate(BaseModel):
    """Course module fields; plugin-specific fields go in data."""

    idnumber: str | None = None
    visible: bool | None = None
    visible_on_course_page: bool | None = None
    indent: int | None = None
    group_mode: int | None = None
    completion: int | None = None
    completion_view: bool | None = None
    completion_expected: datetime | None = None
    show_description: bool | None = None
    availability: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class ModuleInstanceRefResponse(BaseModel):
    instance_id: int
    course_module_id: int
    module: str


class CourseModuleResponse(BaseModel):
    id: int
    course_id: int
    module: str
    instance_id: int
    section_id: int
    idnumber: str | None
    visible: bool
    visible_on_course_page: bool
    indent: int
    group_mode: int
    completion: int
    completion_view: bool
    completion_expected: datetime | None
    show_description: bool
    availability: str | None

    model_config = ConfigDict(from_attributes=True)


class SectionModuleEntry(BaseModel):
    course_module_id: int
    module: str
    instance_id: int
    visible: bool
    indent: int
    completion: int


class SectionListing(BaseModel):
    section_id: int
    section: int
    name: str | None
    modules: list[SectionModuleEntry]


class AvailableModule(BaseModel):
    name: str
    version: int
    release: str | None
    icon: str | None
    description: str
    features: dict[str, bool]
    capabilities: list[str]


class CompletionUpdate(BaseModel):
    user_id: int
    state: CompletionState = CompletionState.COMPLETE


class CompletionStatus(BaseModel):
    completed: bool
    state: int
    viewed: bool
    time_modified: datetime | None


class AccessResponse(BaseModel):
    course_module_id: int
    user_id: int
    can_access: bool


class AjaxRequest(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)


class ViewResponse(BaseModel):
    course_module_id: int
    html: str
