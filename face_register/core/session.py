"""Registration session state machine.

A session moves through ``Idle -> Scanning -> AwaitingName -> Idle`` (new
face) or ``Idle -> Scanning -> Matched`` (known face). Every event is handled
by the pure :func:`transition` function, which returns the next state and a
list of side-effect intents for the UI layer. :class:`RegistrationSession`
owns the current state and applies registry writes.
"""
from __future__ import annotations

import dataclasses
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional, Union

from face_register.core.exceptions import (
    FaceRegisterError,
    InvalidCommandError,
    InvalidTargetError,
    RegistryError,
    StorageError,
    ValidationError,
)
from face_register.core.geometry import DEFAULT_TOLERANCE, matches
from face_register.core.logger import get_session_logger
from face_register.core.registry import FaceRegistry
from face_register.core.types import DetectionResult, Face, FaceId, Rect
from face_register.core.validation import validate_face_name, validate_tolerance

MISALIGNED_MESSAGE = "Face detected but not accurately inside the capture box"


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Tagged:
    """Mixin giving frozen dataclasses a ``{"type": kind, ...}`` form."""

    kind: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind}
        for field in dataclasses.fields(self):  # type: ignore[arg-type]
            data[field.name] = _serialize(getattr(self, field.name))
        return data


# States


@dataclass(frozen=True)
class Idle(_Tagged):
    kind: ClassVar[str] = "idle"


@dataclass(frozen=True)
class Scanning(_Tagged):
    kind: ClassVar[str] = "scanning"


@dataclass(frozen=True)
class AwaitingName(_Tagged):
    """A new face is aligned and the name dialog is open."""

    kind: ClassVar[str] = "awaiting_name"
    pending_face: Face


@dataclass(frozen=True)
class Matched(_Tagged):
    """An aligned face was already registered under ``name``."""

    kind: ClassVar[str] = "matched"
    name: str


@dataclass(frozen=True)
class Rejected(_Tagged):
    """Scanning stopped because the frame could not be evaluated."""

    kind: ClassVar[str] = "rejected"
    reason: str


SessionState = Union[Idle, Scanning, AwaitingName, Matched, Rejected]


# Events


@dataclass(frozen=True)
class StartScan(_Tagged):
    kind: ClassVar[str] = "start_scan"


@dataclass(frozen=True)
class DetectionTick(_Tagged):
    kind: ClassVar[str] = "detection_tick"
    result: DetectionResult


@dataclass(frozen=True)
class SubmitName(_Tagged):
    kind: ClassVar[str] = "submit_name"
    text: str


@dataclass(frozen=True)
class Cancel(_Tagged):
    kind: ClassVar[str] = "cancel"


Event = Union[StartScan, DetectionTick, SubmitName, Cancel]


# Effects


@dataclass(frozen=True)
class StartScanning(_Tagged):
    kind: ClassVar[str] = "start_scanning"


@dataclass(frozen=True)
class StopScanning(_Tagged):
    kind: ClassVar[str] = "stop_scanning"


@dataclass(frozen=True)
class ClearBox(_Tagged):
    kind: ClassVar[str] = "clear_box"


@dataclass(frozen=True)
class DrawBox(_Tagged):
    kind: ClassVar[str] = "draw_box"
    rect: Rect


@dataclass(frozen=True)
class ShowInfo(_Tagged):
    kind: ClassVar[str] = "show_info"
    title: str
    message: str


@dataclass(frozen=True)
class ShowError(_Tagged):
    kind: ClassVar[str] = "show_error"
    title: str
    message: str


@dataclass(frozen=True)
class OpenNameDialog(_Tagged):
    kind: ClassVar[str] = "open_name_dialog"
    face: Face


@dataclass(frozen=True)
class CloseNameDialog(_Tagged):
    kind: ClassVar[str] = "close_name_dialog"


@dataclass(frozen=True)
class RegisterFace(_Tagged):
    """Registry write requested by a confirmed name submission."""

    kind: ClassVar[str] = "register_face"
    face_id: FaceId
    name: str


Effect = Union[
    StartScanning,
    StopScanning,
    ClearBox,
    DrawBox,
    ShowInfo,
    ShowError,
    OpenNameDialog,
    CloseNameDialog,
    RegisterFace,
]


@dataclass(frozen=True)
class Transition:
    """Outcome of handling one event.

    Attributes:
        state: State after the event.
        effects: Side-effect intents, in the order the UI should apply them.
        error: Recoverable error raised while handling the event, if any.
    """

    state: SessionState
    effects: tuple[Effect, ...] = ()
    error: Optional[FaceRegisterError] = None

    def has(self, effect_type: type) -> bool:
        """Check whether an effect of ``effect_type`` was emitted."""
        return any(isinstance(effect, effect_type) for effect in self.effects)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "effects": [effect.to_dict() for effect in self.effects],
            "error": str(self.error) if self.error else None,
        }


def _on_detection(
    result: DetectionResult,
    target: Rect,
    tolerance: float,
    lookup: Callable[[FaceId], Optional[str]],
) -> Transition:
    face = result.primary
    if face is None:
        return Transition(Scanning(), (ClearBox(),))

    effects: list[Effect] = [DrawBox(face.bounds)]

    try:
        aligned = matches(face.bounds, target, tolerance)
    except InvalidTargetError as e:
        effects += [StopScanning(), ShowError("Invalid Target", str(e))]
        return Transition(Rejected(reason=str(e)), tuple(effects), error=e)

    if not aligned:
        effects.append(ShowInfo("Align Your Face", MISALIGNED_MESSAGE))
        return Transition(Scanning(), tuple(effects))

    name = lookup(face.face_id)
    if name is not None:
        effects += [StopScanning(), ShowInfo("Face Detected", f"Name: {name}")]
        return Transition(Matched(name=name), tuple(effects))

    effects += [StopScanning(), OpenNameDialog(face)]
    return Transition(AwaitingName(pending_face=face), tuple(effects))


def _pending_face(state: SessionState, action: str) -> Face:
    if not isinstance(state, AwaitingName):
        raise InvalidCommandError(f"Cannot {action} while {state.kind}")
    return state.pending_face


def transition(
    state: SessionState,
    event: Event,
    *,
    target: Rect,
    lookup: Callable[[FaceId], Optional[str]],
    tolerance: float = DEFAULT_TOLERANCE,
) -> Transition:
    """Compute the next state and side effects for ``event``.

    This function never touches the registry; a confirmed name is returned as
    a :class:`RegisterFace` effect for the caller to apply.

    Args:
        state: Current session state.
        event: Incoming command or detection.
        target: Fixed target region.
        lookup: Registry lookup, returning the name for a face id or None.
        tolerance: Maximum relative deviation for alignment.

    Returns:
        The resulting transition.

    Raises:
        InvalidCommandError: If a name is submitted or the dialog cancelled
            while no face is pending.
    """
    if isinstance(event, StartScan):
        effects: list[Effect] = []
        if isinstance(state, AwaitingName):
            effects.append(CloseNameDialog())
        effects += [ClearBox(), StartScanning()]
        return Transition(Scanning(), tuple(effects))

    if isinstance(event, DetectionTick):
        # Frames still in flight after StopScanning are dropped.
        if not isinstance(state, Scanning):
            return Transition(state)
        return _on_detection(event.result, target, tolerance, lookup)

    if isinstance(event, SubmitName):
        face = _pending_face(state, "submit a name")
        try:
            name = validate_face_name(event.text)
        except ValidationError as e:
            return Transition(state, (ShowError("Error", str(e)),), error=e)
        return Transition(
            Idle(),
            (
                RegisterFace(face_id=face.face_id, name=name),
                ShowInfo("Face Registered", f"Name: {name}"),
                CloseNameDialog(),
            ),
        )

    if isinstance(event, Cancel):
        _pending_face(state, "cancel")
        return Transition(Idle(), (CloseNameDialog(),))

    raise TypeError(f"Unsupported event: {event!r}")


class RegistrationSession:
    """One user's registration flow against a fixed target region.

    Events are processed one at a time; a lock serialises concurrent callers
    so that state and registry writes always move together.
    """

    def __init__(
        self,
        target: Rect,
        registry: Optional[FaceRegistry] = None,
        tolerance: float = DEFAULT_TOLERANCE,
        session_id: Optional[str] = None,
    ) -> None:
        """Initialize the session in the ``Idle`` state.

        Args:
            target: Target region, fixed for the session lifetime.
            registry: Shared face registry; a fresh empty one if omitted.
            tolerance: Maximum relative deviation for alignment.
            session_id: Identifier used in logs; generated if omitted.

        Raises:
            ValidationError: If tolerance is invalid.
        """
        validate_tolerance(tolerance)

        self.session_id = session_id or uuid.uuid4().hex
        self._log = get_session_logger(self.session_id)
        if not target.is_valid():
            self._log.warning(f"Created with an empty target region: {target}")

        self.target = target
        self.tolerance = tolerance
        self.registry = registry if registry is not None else FaceRegistry()
        self._state: SessionState = Idle()
        self._lock = threading.RLock()

    @property
    def state(self) -> SessionState:
        return self._state

    def handle(self, event: Event) -> Transition:
        """Apply ``event`` to the session.

        Returns:
            The transition that was applied.

        Raises:
            InvalidCommandError: If the command is not valid in the current
                state. The state is left unchanged.
        """
        with self._lock:
            before = self._state
            result = transition(
                before,
                event,
                target=self.target,
                lookup=self.registry.lookup,
                tolerance=self.tolerance,
            )
            result = self._apply_registrations(before, result)
            self._state = result.state

        if type(before) is not type(result.state):
            self._log.debug(f"{before.kind} -> {result.state.kind} on {event.kind}")
        if isinstance(result.state, Matched) and not isinstance(before, Matched):
            self._log.info(f"Matched {result.state.name!r}")
        if result.error is not None:
            self._log.warning(str(result.error))
        return result

    def _apply_registrations(
        self, before: SessionState, result: Transition
    ) -> Transition:
        for effect in result.effects:
            if not isinstance(effect, RegisterFace):
                continue
            try:
                self.registry.register(effect.face_id, effect.name)
            except StorageError as e:
                # Entry is kept in memory; only persistence failed.
                return dataclasses.replace(
                    result,
                    effects=result.effects
                    + (ShowError("Storage Error", "Face registered but not saved."),),
                    error=e,
                )
            except RegistryError as e:
                return Transition(before, (ShowError("Error", str(e)),), error=e)
        return result

    def start_scan(self) -> Transition:
        return self.handle(StartScan())

    def detection_tick(self, result: DetectionResult) -> Transition:
        return self.handle(DetectionTick(result))

    def submit_name(self, text: str) -> Transition:
        return self.handle(SubmitName(text))

    def cancel(self) -> Transition:
        return self.handle(Cancel())

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the session for API responses."""
        with self._lock:
            return {
                "session_id": self.session_id,
                "state": self._state.to_dict(),
                "target": self.target.to_dict(),
                "tolerance": self.tolerance,
            }
