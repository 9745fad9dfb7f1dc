"""
mbom_models.py

Item model for the eBOM -> mBOM workbench.

The conversion backend sends BOM lines as camelCase JSON objects. This module
turns them into frozen dataclasses, normalizing missing or malformed fields so
that the graph and statistics code never has to guard against them, and
offers snapshot edit helpers that always return a new tuple of items.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """How an mBOM line relates to its eBOM origin."""

    ADDED = "added"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    GROUPED = "grouped"


CONVERSION_STATUSES = ("processing", "completed", "failed")
STAGE_NAMES = ("parsing", "analysis", "generation", "validation")
STAGE_STATES = ("pending", "in_progress", "completed", "failed")

# Fields a user may correct through the feedback loop (wire names).
CORRECTABLE_FIELDS = ("workCenter", "description", "quantity", "materialSpec", "changeType")


# ---------- Coercion helpers ----------

def _first(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if result != result:  # NaN
        return None
    return result


def _as_str_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    try:
        return tuple(str(v) for v in value if v is not None)
    except TypeError:
        return ()


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def normalize_quantity(value: Any, part_number: str = "") -> int:
    """Quantity is a positive integer; anything else falls back to 1."""
    if value is None:
        return 1
    qty = _as_int(value)
    if qty is None or qty < 1:
        logger.warning("Invalid quantity %r for %s, using 1", value, part_number)
        return 1
    return qty


def normalize_level(value: Any, part_number: str = "") -> int:
    """Level is a non-negative integer; anything else falls back to 0."""
    if value is None:
        return 0
    level = _as_int(value)
    if level is None or level < 0:
        logger.warning("Invalid level %r for %s, using 0", value, part_number)
        return 0
    return level


def normalize_confidence(value: Any, part_number: str = "") -> Optional[float]:
    """Confidence is a float clamped into [0, 1], or None when absent/unreadable."""
    if value is None:
        return None
    conf = _as_float(value)
    if conf is None:
        logger.warning("Unreadable confidence %r for %s, ignoring", value, part_number)
        return None
    if conf < 0.0 or conf > 1.0:
        logger.debug("Clamping confidence %s for %s", conf, part_number)
        conf = min(1.0, max(0.0, conf))
    return conf


def normalize_change_type(value: Any, part_number: str = "") -> Optional[ChangeType]:
    if value is None or value == "":
        return None
    if isinstance(value, ChangeType):
        return value
    try:
        return ChangeType(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown change type %r for %s, ignoring", value, part_number)
        return None


# ---------- Data Models ----------

@dataclass(frozen=True)
class BomItem:
    """One engineering BOM line."""
    part_number: str
    description: str = ""
    quantity: int = 1
    level: int = 0
    material_spec: Optional[str] = None
    notes: Optional[str] = None
    children: Tuple[str, ...] = ()
    id: Optional[str] = None

    @staticmethod
    def _base_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
        # Rows without a part number still count as items; they fall back to
        # their backend id, then to an empty identifier.
        part_number = str(_first(raw, "partNumber", "part_number", "id", default="")).strip()
        if not part_number:
            logger.warning("BOM item without a part number or id: %r", dict(raw))
        return {
            "part_number": part_number,
            "description": str(_first(raw, "description", default="")),
            "quantity": normalize_quantity(_first(raw, "quantity"), part_number),
            "level": normalize_level(_first(raw, "level"), part_number),
            "material_spec": _optional_str(_first(raw, "materialSpec", "material_spec")),
            "notes": _optional_str(_first(raw, "notes")),
            "children": _as_str_tuple(_first(raw, "children")),
            "id": _optional_str(_first(raw, "id")),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "BomItem":
        """
        Build an item from a backend payload (camelCase or snake_case keys).

        Never raises on malformed values; see the normalize_* helpers.
        """
        return cls(**cls._base_fields(raw))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "partNumber": self.part_number,
            "description": self.description,
            "quantity": self.quantity,
            "level": self.level,
        }
        if self.id is not None:
            data["id"] = self.id
        if self.material_spec is not None:
            data["materialSpec"] = self.material_spec
        if self.notes is not None:
            data["notes"] = self.notes
        if self.children:
            data["children"] = list(self.children)
        return data


@dataclass(frozen=True)
class Alternative:
    description: str
    confidence: float = 0.0


@dataclass(frozen=True)
class ManufacturingBomItem(BomItem):
    """
    One manufacturing BOM line, as produced by the conversion backend.

    confidence, change_type and reasoning are the AI classifier's output and
    are consumed as-is.
    """
    work_center: Optional[str] = None
    change_type: Optional[ChangeType] = None
    confidence: Optional[float] = None
    reasoning: str = ""
    dependencies: Tuple[str, ...] = ()
    sequence: Optional[int] = None
    tooling: Tuple[str, ...] = ()
    process_steps: Tuple[str, ...] = ()
    alternatives: Tuple[Alternative, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ManufacturingBomItem":
        fields = cls._base_fields(raw)
        pn = fields["part_number"]

        alternatives = []
        for alt in _first(raw, "alternatives", default=()) or ():
            if isinstance(alt, Mapping):
                alternatives.append(
                    Alternative(
                        description=str(alt.get("description", "")),
                        confidence=normalize_confidence(alt.get("confidence"), pn) or 0.0,
                    )
                )

        sequence = _first(raw, "sequence")
        fields.update(
            work_center=_optional_str(_first(raw, "workCenter", "work_center")),
            change_type=normalize_change_type(_first(raw, "changeType", "change_type"), pn),
            confidence=normalize_confidence(_first(raw, "confidence"), pn),
            reasoning=str(_first(raw, "reasoning", default="")),
            dependencies=_as_str_tuple(_first(raw, "dependencies")),
            sequence=_as_int(sequence) if sequence is not None else None,
            tooling=_as_str_tuple(_first(raw, "tooling")),
            process_steps=_as_str_tuple(_first(raw, "processSteps", "process_steps")),
            alternatives=tuple(alternatives),
        )
        return cls(**fields)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["changeType"] = self.change_type.value if self.change_type else None
        data["confidence"] = self.confidence
        data["reasoning"] = self.reasoning
        if self.work_center is not None:
            data["workCenter"] = self.work_center
        if self.dependencies:
            data["dependencies"] = list(self.dependencies)
        if self.sequence is not None:
            data["sequence"] = self.sequence
        if self.tooling:
            data["tooling"] = list(self.tooling)
        if self.process_steps:
            data["processSteps"] = list(self.process_steps)
        if self.alternatives:
            data["alternatives"] = [
                {"description": a.description, "confidence": a.confidence}
                for a in self.alternatives
            ]
        return data


def parse_items(raw_items: Optional[Iterable[Any]], item_cls=ManufacturingBomItem) -> Tuple[Any, ...]:
    """
    Normalize a backend item list into a tuple of `item_cls`.

    Rows that are already `item_cls` instances pass through; every mapping
    becomes exactly one item. Anything else (None, strings) is not a BOM row
    and is skipped.
    """
    items = []
    for index, raw in enumerate(raw_items or ()):
        if isinstance(raw, item_cls):
            items.append(raw)
            continue
        if not isinstance(raw, Mapping):
            logger.warning("Skipping BOM row %d: not an object (%r)", index, raw)
            continue
        items.append(item_cls.from_dict(raw))
    return tuple(items)


def validate_unique_part_numbers(items: Iterable[BomItem]) -> List[str]:
    """Return the part numbers that occur more than once, in first-seen order."""
    seen = set()
    duplicates: List[str] = []
    for item in items:
        if item.part_number in seen and item.part_number not in duplicates:
            duplicates.append(item.part_number)
        seen.add(item.part_number)
    return duplicates


# ---------- Snapshot edits ----------
# Every helper returns a new tuple; the input sequence is left untouched.

def update_item(items: Sequence[BomItem], index: int, **changes: Any) -> Tuple[BomItem, ...]:
    """Replace fields of the item at `index`, e.g. update_item(bom, 2, work_center="WC-PAINT")."""
    snapshot = tuple(items)
    pn = snapshot[index].part_number
    if "change_type" in changes:
        changes["change_type"] = normalize_change_type(changes["change_type"], pn)
    if "quantity" in changes:
        changes["quantity"] = normalize_quantity(changes["quantity"], pn)
    if "level" in changes:
        changes["level"] = normalize_level(changes["level"], pn)
    if "confidence" in changes:
        changes["confidence"] = normalize_confidence(changes["confidence"], pn)
    updated = replace(snapshot[index], **changes)
    return snapshot[:index] + (updated,) + snapshot[index + 1:]


def remove_item(items: Sequence[BomItem], index: int) -> Tuple[BomItem, ...]:
    snapshot = tuple(items)
    return snapshot[:index] + snapshot[index + 1:]


def insert_item(items: Sequence[BomItem], item: BomItem, index: Optional[int] = None) -> Tuple[BomItem, ...]:
    """Insert `item` at `index` (append when index is None)."""
    snapshot = tuple(items)
    if index is None:
        index = len(snapshot)
    return snapshot[:index] + (item,) + snapshot[index:]


def move_item(items: Sequence[BomItem], from_index: int, to_index: int) -> Tuple[BomItem, ...]:
    snapshot = list(items)
    item = snapshot.pop(from_index)
    snapshot.insert(to_index, item)
    return tuple(snapshot)


# ---------- Backend payloads ----------

@dataclass(frozen=True)
class BomData:
    """Both sides of a conversion."""
    ebom: Tuple[BomItem, ...] = ()
    mbom: Tuple[ManufacturingBomItem, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "BomData":
        # The backend wraps each list as {"items": [...]}; plain lists are accepted too.
        def _items(*keys: str) -> Any:
            value = _first(raw, *keys, default=())
            if isinstance(value, Mapping):
                return value.get("items") or ()
            return value

        return cls(
            ebom=parse_items(_items("ebomData", "ebom"), BomItem),
            mbom=parse_items(_items("mbomData", "mbom"), ManufacturingBomItem),
        )


@dataclass(frozen=True)
class ConversionStatus:
    conversion_id: str
    status: str
    progress: int = 0
    current_stage: Optional[str] = None
    stages: Dict[str, str] = field(default_factory=dict)
    estimated_time_remaining: Optional[float] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ConversionStatus":
        status = str(_first(raw, "status", default="processing"))
        if status not in CONVERSION_STATUSES:
            logger.warning("Unknown conversion status %r", status)

        progress = _as_int(_first(raw, "progress", default=0)) or 0
        raw_stages = _first(raw, "stages", default={})
        if not isinstance(raw_stages, Mapping):
            logger.warning("Ignoring malformed stages %r", raw_stages)
            raw_stages = {}
        stages = {
            name: str(state)
            for name, state in raw_stages.items()
            if name in STAGE_NAMES
        }
        return cls(
            conversion_id=str(_first(raw, "conversionId", "conversion_id", default="")),
            status=status,
            progress=min(100, max(0, progress)),
            current_stage=_optional_str(_first(raw, "currentStage", "current_stage")),
            stages=stages,
            estimated_time_remaining=_as_float(_first(raw, "estimatedTimeRemaining")),
            started_at=_optional_str(_first(raw, "startedAt", "started_at")),
            completed_at=_optional_str(_first(raw, "completedAt", "completed_at")),
            error_message=_optional_str(_first(raw, "errorMessage", "error_message", "error")),
        )


@dataclass(frozen=True)
class ConversionRecord:
    """One row of the conversion history."""
    conversion_id: str
    file_name: str = ""
    status: str = ""
    ebom_part_count: int = 0
    mbom_part_count: int = 0
    confidence_score: float = 0.0
    time_taken: float = 0.0
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ConversionRecord":
        return cls(
            conversion_id=str(_first(raw, "conversionId", "conversion_id", default="")),
            file_name=str(_first(raw, "fileName", "filename", "file_name", default="")),
            status=str(_first(raw, "status", default="")),
            ebom_part_count=_as_int(_first(raw, "ebomPartCount", default=0)) or 0,
            mbom_part_count=_as_int(_first(raw, "mbomPartCount", default=0)) or 0,
            confidence_score=_as_float(_first(raw, "confidenceScore", default=0)) or 0.0,
            time_taken=_as_float(_first(raw, "timeTaken", default=0)) or 0.0,
            created_at=_optional_str(_first(raw, "createdAt", "created_at")),
        )


@dataclass(frozen=True)
class FieldCorrection:
    """A user's correction of one field on one mBOM item."""
    item_id: str
    field: str
    corrected_value: Any
    original_value: Any = None
    reasoning: str = ""

    def __post_init__(self):
        if self.field not in CORRECTABLE_FIELDS:
            raise ValueError(
                f"Field {self.field!r} cannot be corrected; expected one of {CORRECTABLE_FIELDS}"
            )

    @classmethod
    def for_item(cls, item: ManufacturingBomItem, field_name: str, corrected_value: Any,
                 reasoning: str = "") -> "FieldCorrection":
        """Build a correction, reading the original value off the item."""
        original = item.to_dict().get(field_name)
        return cls(
            item_id=item.id or item.part_number,
            field=field_name,
            corrected_value=corrected_value,
            original_value=original,
            reasoning=reasoning,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemId": self.item_id,
            "field": self.field,
            "originalValue": self.original_value,
            "correctedValue": self.corrected_value,
            "reasoning": self.reasoning,
        }


def create_sample_mbom() -> Tuple[ManufacturingBomItem, ...]:
    """
    Create a small sample mBOM for demonstration.

    Returns:
        Tuple of ManufacturingBomItem
    """
    rows = [
        {"partNumber": "BIKE-001", "description": "Bicycle, complete", "level": 0,
         "workCenter": "WC-FINAL-01", "changeType": "unchanged", "confidence": 0.97},
        {"partNumber": "FRAME-001", "description": "Frame assembly", "level": 1,
         "workCenter": "WC-WELD-02", "changeType": "modified", "confidence": 0.82,
         "reasoning": "Weld and paint merged into one routing step"},
        {"partNumber": "WHEEL-KIT", "description": "Wheel kit (rim, tire, spokes)", "quantity": 2,
         "level": 1, "workCenter": "WC-ASSY-03", "changeType": "grouped", "confidence": 0.74},
        {"partNumber": "STEEL-TUBE", "description": "Steel tube 28mm", "quantity": 3, "level": 2,
         "materialSpec": "AISI 4130", "changeType": "unchanged", "confidence": 0.95},
        {"partNumber": "PAINT-BLACK", "description": "Powder coat, black", "level": 2,
         "workCenter": "WC-PAINT-01", "changeType": "added", "confidence": 0.61,
         "dependencies": ["FRAME-001"]},
        {"partNumber": "SPOKE-001", "description": "Spoke 2mm stainless", "quantity": 36,
         "level": 2, "changeType": "unchanged", "confidence": 0.9,
         "dependencies": ["WHEEL-KIT"]},
    ]
    return parse_items(rows)
