"""
reference_poses.py - Typed reference pose catalog.

A reference pose is the set of geometric constraints that define correct form
for one exercise seen from one camera angle. The catalog is read-only once
loaded; every entry is validated at load time so that a bad body-part name or
tolerance surfaces immediately instead of silently passing every frame.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..errors import ConfigurationError, UnknownReferencePoseError
from ..pose_detection.keypoints import BodyPart, parse_body_part

VIEW_ANGLES = ("front", "side")


class AlignmentMethod(Enum):
    """Which alignment validator a reference pose uses."""
    SLOPE = "slope"            # consecutive-segment slope consistency
    REGRESSION = "regression"  # least-squares fit, tolerant of oblique lines


@dataclass(frozen=True)
class AlignmentConstraint:
    parts: Tuple[BodyPart, ...]
    tolerance: float


@dataclass(frozen=True)
class AngleConstraint:
    joint: BodyPart
    limbs: Tuple[BodyPart, BodyPart]
    target_degrees: float
    tolerance_degrees: float

    @property
    def parts(self) -> Tuple[BodyPart, BodyPart, BodyPart]:
        return (self.limbs[0], self.joint, self.limbs[1])


@dataclass(frozen=True)
class ReferencePose:
    exercise: str
    view_angle: str
    alignments: Tuple[AlignmentConstraint, ...] = ()
    angles: Tuple[AngleConstraint, ...] = ()
    alignment_method: AlignmentMethod = AlignmentMethod.SLOPE
    # Perspective skew: a failed alignment is re-checked at tolerance * recheck_factor
    recheck_factor: Optional[float] = None
    general_message: str = ""
    part_messages: Mapping[BodyPart, str] = field(default_factory=dict)

    def message_for(self, part: BodyPart) -> Optional[str]:
        return self.part_messages.get(part)


# --- Parsing helpers ---

def _require_positive(value: Any, what: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{what} must be a number, got {value!r}") from None
    if number <= 0:
        raise ConfigurationError(f"{what} must be positive, got {number}")
    return number


def _parse_part(name: Any, where: str) -> BodyPart:
    try:
        return parse_body_part(name)
    except ValueError as e:
        raise ConfigurationError(f"{where}: {e}") from None


def _parse_alignment(raw: Dict[str, Any], where: str) -> AlignmentConstraint:
    names = raw.get("parts") or []
    if len(names) < 3:
        raise ConfigurationError(f"{where}: alignment needs at least 3 parts, got {len(names)}")
    parts = tuple(_parse_part(n, where) for n in names)
    if len(set(parts)) != len(parts):
        raise ConfigurationError(f"{where}: alignment parts must be distinct")
    tolerance = _require_positive(raw.get("tolerance"), f"{where}: alignment tolerance")
    return AlignmentConstraint(parts=parts, tolerance=tolerance)


def _parse_angle(raw: Dict[str, Any], where: str) -> AngleConstraint:
    joint = _parse_part(raw.get("joint"), where)
    limbs = raw.get("limbs") or []
    if len(limbs) != 2:
        raise ConfigurationError(f"{where}: angle constraint on {joint.value} needs exactly 2 limbs")
    limb_a, limb_b = (_parse_part(n, where) for n in limbs)
    if len({joint, limb_a, limb_b}) != 3:
        raise ConfigurationError(f"{where}: angle constraint on {joint.value} uses a part twice")
    try:
        target = float(raw.get("target"))
    except (TypeError, ValueError):
        raise ConfigurationError(f"{where}: angle target must be a number") from None
    if not 0.0 <= target <= 180.0:
        raise ConfigurationError(f"{where}: angle target {target} outside [0, 180]")
    tolerance = _require_positive(raw.get("tolerance"), f"{where}: angle tolerance")
    return AngleConstraint(joint=joint, limbs=(limb_a, limb_b), target_degrees=target, tolerance_degrees=tolerance)


def _parse_messages(raw: Any, where: str) -> Dict[BodyPart, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{where}: part_messages must be an object")
    return {_parse_part(name, where): str(text) for name, text in raw.items()}


def parse_reference_pose(exercise: str, view_angle: str, raw: Dict[str, Any],
                         general_message: str = "",
                         part_messages: Optional[Dict[BodyPart, str]] = None) -> ReferencePose:
    """Build one validated ReferencePose from its JSON definition."""
    where = f"{exercise}/{view_angle}"
    if view_angle not in VIEW_ANGLES:
        raise ConfigurationError(f"{where}: unknown view angle (expected one of {', '.join(VIEW_ANGLES)})")

    method_name = raw.get("alignment_method", AlignmentMethod.SLOPE.value)
    try:
        method = AlignmentMethod(method_name)
    except ValueError:
        raise ConfigurationError(f"{where}: unknown alignment method {method_name!r}") from None

    recheck = raw.get("recheck_factor")
    if recheck is not None:
        recheck = _require_positive(recheck, f"{where}: recheck_factor")
        if recheck < 1.0:
            raise ConfigurationError(f"{where}: recheck_factor must be >= 1.0, got {recheck}")

    messages = dict(part_messages or {})
    messages.update(_parse_messages(raw.get("part_messages"), where))

    return ReferencePose(
        exercise=exercise,
        view_angle=view_angle,
        alignments=tuple(_parse_alignment(a, where) for a in raw.get("alignments", [])),
        angles=tuple(_parse_angle(a, where) for a in raw.get("angles", [])),
        alignment_method=method,
        recheck_factor=recheck,
        general_message=str(raw.get("general_message", general_message)),
        part_messages=MappingProxyType(messages),
    )


class ReferenceCatalog:
    """Read-only table of ReferencePose keyed by (exercise, view_angle)."""

    def __init__(self, poses: Iterable[ReferencePose]):
        self._poses: Dict[Tuple[str, str], ReferencePose] = {}
        for pose in poses:
            key = (pose.exercise, pose.view_angle)
            if key in self._poses:
                raise ConfigurationError(f"Duplicate reference pose for {pose.exercise}/{pose.view_angle}")
            self._poses[key] = pose

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ReferenceCatalog":
        """
        Build a catalog from its JSON form:

            {"<exercise>": {"general_message": ..., "part_messages": {...},
                            "views": {"side": {...}, "front": {...}}}}
        """
        if not isinstance(raw, dict):
            raise ConfigurationError("Reference pose catalog must be a JSON object")
        poses: List[ReferencePose] = []
        for exercise, definition in raw.items():
            if not isinstance(definition, dict) or not definition.get("views"):
                raise ConfigurationError(f"{exercise}: exercise defines no views")
            general_message = str(definition.get("general_message", ""))
            part_messages = _parse_messages(definition.get("part_messages"), exercise)
            for view_angle, view_def in definition["views"].items():
                poses.append(parse_reference_pose(exercise, view_angle, view_def, general_message, part_messages))
        return cls(poses)

    def get(self, exercise: str, view_angle: str) -> ReferencePose:
        try:
            return self._poses[(exercise, view_angle)]
        except KeyError:
            raise UnknownReferencePoseError(exercise, view_angle) from None

    def exercises(self) -> List[str]:
        return sorted({exercise for exercise, _ in self._poses})

    def views(self, exercise: str) -> List[str]:
        return sorted(view for ex, view in self._poses if ex == exercise)

    def __contains__(self, key) -> bool:
        return key in self._poses

    def __iter__(self) -> Iterator[ReferencePose]:
        return iter(self._poses.values())

    def __len__(self) -> int:
        return len(self._poses)
