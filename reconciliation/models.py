"""Reconciliation data model.

Value types shared by the periodic sync pass and the order webhook path:
material codes, the relations mapping, dependent variants, adjustment deltas
and the tagged per-material outcome.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import RootModel, field_validator


MATERIAL_CODE_PATTERN = re.compile(r"^[A-Z0-9]{3}$")
VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"
LOCATION_GID_PREFIX = "gid://shopify/Location/"


def normalize_material_code(code: str) -> str:
    """Material codes compare case-insensitively; uppercase is canonical."""
    return code.strip().upper()


def is_valid_material_code(code: str) -> bool:
    return bool(MATERIAL_CODE_PATTERN.match(code))


# =============================================================================
# Relations
# =============================================================================

class Relations(RootModel[Dict[str, str]]):
    """Material code -> canonical variant GID.

    Keys are uppercased on construction. Values are taken as stored; an empty
    value is kept so the sync pass can report that material as skipped.
    """

    @field_validator("root", mode="before")
    @classmethod
    def _normalize_codes(cls, value: Any) -> Dict[str, str]:
        if not isinstance(value, dict):
            raise ValueError("relations must be a JSON object")
        return {normalize_material_code(str(code)): ref for code, ref in value.items()}

    def codes(self) -> List[str]:
        return list(self.root)

    def items(self) -> List[Tuple[str, str]]:
        return list(self.root.items())

    def get(self, code: str) -> Optional[str]:
        return self.root.get(normalize_material_code(code))

    def __iter__(self) -> Iterator[str]:
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and normalize_material_code(code) in self.root


# =============================================================================
# Location
# =============================================================================

@dataclass(frozen=True)
class LocationRef:
    """Inventory location, accepted as a numeric id or a Location GID."""
    id: str

    @classmethod
    def parse(cls, value: str) -> "LocationRef":
        value = str(value).strip()
        if value.startswith(LOCATION_GID_PREFIX):
            value = value[len(LOCATION_GID_PREFIX):]
        if not value:
            raise ValueError("Location id is empty")
        return cls(id=value)

    @property
    def gid(self) -> str:
        return f"{LOCATION_GID_PREFIX}{self.id}"


# =============================================================================
# Dependents and deltas
# =============================================================================

@dataclass(frozen=True)
class DependentVariant:
    """A sellable variant whose stock tracks a material's canonical variant."""
    variant_id: str
    sku: str
    inventory_item_id: str
    product_title: str


@dataclass(frozen=True)
class AdjustmentDelta:
    """Signed change to an inventory item's available quantity."""
    inventory_item_id: str
    delta: int

    def __post_init__(self):
        if self.delta == 0:
            raise ValueError(f"Zero delta for {self.inventory_item_id}; no-op adjustments are not emitted")

    def to_change(self, location_gid: str) -> Dict[str, Any]:
        """Shape expected by inventoryAdjustQuantities `changes`."""
        return {
            "inventoryItemId": self.inventory_item_id,
            "delta": self.delta,
            "locationId": location_gid,
        }


# =============================================================================
# Outcomes
# =============================================================================

class OutcomeStatus(str, Enum):
    """Result of reconciling one material."""
    RESOLVED = "RESOLVED"   # In sync after this pass (with or without adjustments)
    SKIPPED = "SKIPPED"     # Canonical record could not be resolved
    FAILED = "FAILED"       # Platform call or adjustment failed


@dataclass
class MaterialOutcome:
    """Tagged per-material result aggregated by the sync pass."""
    material_code: str
    status: OutcomeStatus
    adjustments: List[AdjustmentDelta] = field(default_factory=list)
    reason: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def resolved(cls, material_code: str, adjustments: Optional[List[AdjustmentDelta]] = None) -> "MaterialOutcome":
        return cls(material_code, OutcomeStatus.RESOLVED, adjustments=list(adjustments or []))

    @classmethod
    def skipped(cls, material_code: str, reason: str) -> "MaterialOutcome":
        return cls(material_code, OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, material_code: str, error: Exception) -> "MaterialOutcome":
        return cls(material_code, OutcomeStatus.FAILED, reason=str(error), error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_code": self.material_code,
            "status": self.status.value,
            "adjustments": [
                {"inventory_item_id": a.inventory_item_id, "delta": a.delta}
                for a in self.adjustments
            ],
            "reason": self.reason,
        }


@dataclass
class SyncReport:
    """Outcome of one full reconciliation pass."""
    run_id: str
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    outcomes: List[MaterialOutcome] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def resolved(self) -> int:
        return self._count(OutcomeStatus.RESOLVED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def adjustment_count(self) -> int:
        return sum(len(o.adjustments) for o in self.outcomes)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def outcome_for(self, material_code: str) -> Optional[MaterialOutcome]:
        code = normalize_material_code(material_code)
        for outcome in self.outcomes:
            if outcome.material_code == code:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "summary": {
                "materials": len(self.outcomes),
                "resolved": self.resolved,
                "skipped": self.skipped,
                "failed": self.failed,
                "adjustments": self.adjustment_count,
            },
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
