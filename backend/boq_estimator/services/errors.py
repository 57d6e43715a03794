"""
Estimator error taxonomy.

Recoverable conditions (incomplete configuration, no catalog match) are
reported as ``Diagnostic`` records alongside an empty result. Version locks
are hard rejections. Persistence failures are logged and retried by the next
autosave cycle.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


class EstimatorError(Exception):
    """Base class for all estimator errors."""


class ConfigurationIncomplete(EstimatorError):
    """Required dimension or option is missing or non-positive."""


class NoCatalogMatch(EstimatorError):
    """Neither strict nor keyword matching found a catalog variant."""


class CatalogUnavailable(EstimatorError):
    """The catalog could not be loaded at all."""


class VersionLocked(EstimatorError):
    def __init__(self, version_id: str, action: str = "modify"):
        self.version_id = version_id
        self.action = action
        super().__init__(f"BOQ version {version_id} is submitted; cannot {action}")


class VersionNotFound(EstimatorError):
    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"BOQ version {version_id} not found")


class ProjectNotFound(EstimatorError):
    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class ItemNotFound(EstimatorError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"BOQ item {item_id} not found")


class PersistenceFailure(EstimatorError):
    """The version/item store rejected or failed a write."""


@dataclass
class Diagnostic:
    kind: str                      # "CONFIGURATION_INCOMPLETE" | "NO_CATALOG_MATCH" | "CATALOG_UNAVAILABLE"
    message: str
    subject: Optional[str] = None  # type label or config field the diagnostic refers to

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


CONFIGURATION_INCOMPLETE = "CONFIGURATION_INCOMPLETE"
NO_CATALOG_MATCH = "NO_CATALOG_MATCH"
CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
