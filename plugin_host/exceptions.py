"""
Custom Exception Classes for the Plugin Host

This module defines the error taxonomy of the extension runtime so that
lifecycle, loader and positioning failures reach callers with a consistent
shape. Storage errors raised by SQLAlchemy are not part of this
hierarchy; services roll back and re-raise them unchanged.
"""

from typing import Any

from fastapi import status


class PluginHostError(Exception):
    """Base exception class for all plugin-host exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ResourceNotFoundError(PluginHostError):
    """Base class for resource not found errors"""

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class PluginNotFoundError(ResourceNotFoundError):
    """Raised when no manifest exists for a (type, name) pair"""

    def __init__(self, plugin_type: str, name: str):
        super().__init__(resource_type="Plugin", resource_id=f"{plugin_type}/{name}")
        self.plugin_type = plugin_type
        self.name = name


class BlockInstanceNotFoundError(ResourceNotFoundError):
    """Raised when a block instance is not found"""

    def __init__(self, instance_id: Any | None = None):
        super().__init__(resource_type="BlockInstance", resource_id=instance_id)


class BlockPositionNotFoundError(ResourceNotFoundError):
    """Raised when a block instance has no position in the given context"""

    def __init__(self, instance_id: int, context_id: int):
        super().__init__(resource_type="BlockPosition", resource_id=f"{instance_id}@{context_id}")


class CourseModuleNotFoundError(ResourceNotFoundError):
    """Raised when a course module record is not found"""

    def __init__(self, course_module_id: Any | None = None):
        super().__init__(resource_type="CourseModule", resource_id=course_module_id)


class SectionNotFoundError(ResourceNotFoundError):
    """Raised when a course section is not found"""

    def __init__(self, section_id: Any | None = None):
        super().__init__(resource_type="CourseSection", resource_id=section_id)


# ============================================================================
# Malformed Plugin Exceptions
# ============================================================================


class InvalidDescriptorError(PluginHostError):
    """Raised when a plugin manifest cannot be parsed"""

    def __init__(self, plugin_type: str, name: str, reason: str, field: str | None = None):
        details: dict[str, Any] = {"plugin": f"{plugin_type}/{name}", "reason": reason}
        if field:
            details["field"] = field
        super().__init__(
            message=f"Invalid descriptor for {plugin_type}/{name}: {reason}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class InterfaceMismatchError(PluginHostError):
    """Raised when a plugin implementation does not satisfy its type contract"""

    def __init__(self, plugin_type: str, name: str, missing: list[str] | None = None, reason: str | None = None):
        missing = missing or []
        message = f"Plugin {plugin_type}/{name} does not satisfy the {plugin_type} contract"
        if reason:
            message = f"{message}: {reason}"
        elif missing:
            message = f"{message}: missing {', '.join(missing)}"
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"plugin": f"{plugin_type}/{name}", "missing": missing},
        )


# ============================================================================
# Lifecycle Exceptions
# ============================================================================


class IncompatibleVersionError(PluginHostError):
    """Raised when a plugin requires a newer host than the one running"""

    def __init__(self, component: str, required: int, host_version: int):
        super().__init__(
            message=f"{component} requires host version {required}, running {host_version}",
            status_code=status.HTTP_409_CONFLICT,
            details={"component": component, "required": required, "host_version": host_version},
        )


class UnsatisfiedDependencyError(PluginHostError):
    """Raised when a declared dependency is disabled, missing or too old"""

    def __init__(self, component: str, dependency: str, required: int, installed: int | None, enabled: bool):
        if installed is None:
            reason = "not installed"
        elif not enabled:
            reason = "not enabled"
        else:
            reason = f"installed version {installed} is older than {required}"
        super().__init__(
            message=f"{component} depends on {dependency} >= {required} ({reason})",
            status_code=status.HTTP_409_CONFLICT,
            details={
                "component": component,
                "dependency": dependency,
                "required": required,
                "installed": installed,
                "enabled": enabled,
            },
        )
        self.dependency = dependency


class InvalidPluginStateError(PluginHostError):
    """Raised when a lifecycle transition is not valid from the current state"""

    def __init__(self, component: str, state: str, action: str):
        super().__init__(
            message=f"Cannot {action} {component}: plugin is {state}",
            status_code=status.HTTP_409_CONFLICT,
            details={"component": component, "state": state, "action": action},
        )


class LifecycleHookError(PluginHostError):
    """Raised when a plugin install/upgrade/uninstall hook fails"""

    def __init__(self, component: str, stage: str, error: str):
        super().__init__(
            message=f"{stage} hook for {component} failed: {error}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"component": component, "stage": stage},
        )


class InitializationFailedError(PluginHostError):
    """Raised when one-time plugin initialization fails; nothing is cached"""

    def __init__(self, plugin_type: str, name: str, error: str):
        super().__init__(
            message=f"Initialization of {plugin_type}/{name} failed: {error}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"plugin": f"{plugin_type}/{name}"},
        )


class PluginDisabledError(PluginHostError):
    """Raised when an operation needs a plugin that is not enabled"""

    def __init__(self, plugin_type: str, name: str):
        super().__init__(
            message=f"Plugin {plugin_type}/{name} is not enabled",
            status_code=status.HTTP_409_CONFLICT,
            details={"plugin": f"{plugin_type}/{name}"},
        )


# ============================================================================
# Validation & Business Logic Exceptions
# ============================================================================


class InvalidOperationError(PluginHostError):
    """Raised when an operation is invalid in the current context"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details or {})
