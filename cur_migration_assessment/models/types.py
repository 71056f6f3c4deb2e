"""
Core enums for CUR ingestion and migration reporting.
"""

from enum import Enum


class WorkloadType(str, Enum):
    """Coarse category of a workload derived from its AWS service"""
    COMPUTE = "compute"
    STORAGE = "storage"
    DATABASE = "database"
    NETWORK = "network"
    FUNCTION = "function"
    CONTAINER = "container"
    OTHER = "other"


class OperatingSystem(str, Enum):
    LINUX = "linux"
    WINDOWS = "windows"


class ComplexityBand(str, Enum):
    """Complexity buckets on the 1-10 assessment scale"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNASSIGNED = "unassigned"


class ReadinessTier(str, Enum):
    """Migration readiness tiers"""
    READY = "ready"
    CONDITIONAL = "conditional"
    NOT_READY = "notReady"
    UNASSIGNED = "unassigned"


class SkipReason(str, Enum):
    """Why a CUR data row did not contribute to a workload record"""
    NO_PRODUCT_CODE = "noProductCode"
    TAX = "tax"
    MALFORMED = "malformed"


class MigrationStrategy(str, Enum):
    """Migration strategies (the 6 Rs)"""
    REHOST = "Rehost"
    REPLATFORM = "Replatform"
    REFACTOR = "Refactor"
    REPURCHASE = "Repurchase"
    RETAIN = "Retain"
    RETIRE = "Retire"


class MigrationEffort(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
