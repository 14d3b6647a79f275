"""Plugin kinds, context levels, capability risk bits and completion states."""

import enum

# Context levels (capabilities are declared against one of these)
CONTEXT_SYSTEM = 10
CONTEXT_USER = 30
CONTEXT_COURSECAT = 40
CONTEXT_COURSE = 50
CONTEXT_MODULE = 70
CONTEXT_BLOCK = 80

# Capability risk bitmask
RISK_MANAGETRUST = 0x0001
RISK_CONFIG = 0x0002
RISK_XSS = 0x0004
RISK_PERSONAL = 0x0008
RISK_SPAM = 0x0010
RISK_DATALOSS = 0x0020

# Dependency key that refers to the host itself
CORE_COMPONENT = "core"

# Enrollment status of an active enrolment row
ENROL_USER_ACTIVE = 0


class CompletionState(int, enum.Enum):
    INCOMPLETE = 0
    COMPLETE = 1
    COMPLETE_PASS = 2
    COMPLETE_FAIL = 3


class PluginType(str, enum.Enum):
    """Plugin kinds; the value doubles as the directory name under the plugin root."""

    MODULE = "module"
    BLOCK = "block"
    THEME = "theme"


class Maturity(str, enum.Enum):
    ALPHA = "alpha"
    BETA = "beta"
    RC = "rc"
    STABLE = "stable"
