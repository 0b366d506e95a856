"""Replay pipeline: drive a registration session from a recorded detection log."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import cv2

from face_register.core.exceptions import InvalidCommandError, ValidationError
from face_register.core.logger import get_logger
from face_register.core.overlay_render import OverlayRenderer
from face_register.core.session import (
    MISALIGNED_MESSAGE,
    AwaitingName,
    Cancel,
    CloseNameDialog,
    DetectionTick,
    Event,
    Matched,
    RegisterFace,
    RegistrationSession,
    ShowInfo,
    StartScan,
    StopScanning,
    SubmitName,
    Transition,
)
from face_register.core.types import DetectionResult, Face, JSONDict

logger = get_logger("replay")

NameResolver = Callable[[Face], Optional[str]]


def parse_record(record: JSONDict) -> Event:
    """Turn one log record into a session event.

    Records are either commands, ``{"command": "start_scan"}``,
    ``{"command": "submit_name", "text": "..."}`` and ``{"command": "cancel"}``,
    or detection payloads ``{"faces": [...]}``.

    Raises:
        ValidationError: If the record is not understood.
    """
    if not isinstance(record, dict):
        raise ValidationError("record must be an object")

    command = record.get("command")
    if command is None:
        return DetectionTick(DetectionResult.from_dict(record))
    if command == "start_scan":
        return StartScan()
    if command == "submit_name":
        return SubmitName(str(record.get("text", "")))
    if command == "cancel":
        return Cancel()
    raise ValidationError(f"Unknown command: {command!r}")


def iter_records(log_path: Path) -> Iterator[tuple[int, JSONDict]]:
    """Yield ``(line_number, record)`` pairs from a JSON-lines file.

    Blank lines and lines starting with ``#`` are skipped.

    Raises:
        FileNotFoundError: If the log does not exist.
        ValidationError: If a line is not valid JSON.
    """
    if not log_path.exists():
        raise FileNotFoundError(f"Detection log not found: {log_path}")

    with log_path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                yield line_no, json.loads(line)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Line {line_no}: invalid JSON ({e})") from e


def replay_log(
    *,
    session: RegistrationSession,
    log_path: Path,
    resolve_name: Optional[NameResolver] = None,
    auto_start: bool = True,
    frames_dir: Optional[Path] = None,
    viewport: Optional[tuple[int, int]] = None,
) -> dict[str, Any]:
    """Replay a detection log through a session.

    For each record:
      1. Parse it into a command or a detection tick
      2. Hand it to the session
      3. If the name dialog opened, ask ``resolve_name`` for a name and submit
         it, or cancel when no name is returned
      4. Optionally render the overlay frame to ``frames_dir``

    Args:
        session: Session to drive; its registry receives new registrations.
        log_path: JSON-lines detection log.
        resolve_name: Called with the pending face when the dialog opens.
            Without it the dialog stays open and later frames are dropped
            until the log issues its own command.
        auto_start: Issue ``start_scan`` before the first record.
        frames_dir: Directory to write annotated PNG frames into.
        viewport: ``(width, height)`` of rendered frames. Required with
            ``frames_dir``.

    Returns:
        Dictionary with counts of frames, matches, registrations, misaligned
        frames, rejected commands, and the final session state.

    Raises:
        ValueError: If ``frames_dir`` is given without ``viewport``.
    """
    if frames_dir is not None and viewport is None:
        raise ValueError("viewport is required when rendering frames")

    renderer = OverlayRenderer()
    if frames_dir is not None:
        frames_dir.mkdir(parents=True, exist_ok=True)

    stats = {
        "records": 0,
        "frames": 0,
        "misaligned": 0,
        "matches": [],
        "registrations": [],
        "cancelled": 0,
        "rejected_commands": 0,
    }

    def _track(result: Transition) -> None:
        renderer.apply(result.effects)
        if isinstance(result.state, Matched) and result.has(StopScanning):
            stats["matches"].append(result.state.name)
        for effect in result.effects:
            if isinstance(effect, ShowInfo) and effect.message == MISALIGNED_MESSAGE:
                stats["misaligned"] += 1
            elif isinstance(effect, RegisterFace):
                stats["registrations"].append(
                    {"face_id": effect.face_id, "name": effect.name}
                )
            elif isinstance(effect, CloseNameDialog) and not result.has(RegisterFace):
                stats["cancelled"] += 1

    if auto_start:
        _track(session.start_scan())

    for line_no, record in iter_records(log_path):
        stats["records"] += 1
        event = parse_record(record)
        if isinstance(event, DetectionTick):
            stats["frames"] += 1

        try:
            _track(session.handle(event))
        except InvalidCommandError as e:
            stats["rejected_commands"] += 1
            logger.warning(f"Line {line_no}: {e}")
            continue

        state = session.state
        if isinstance(state, AwaitingName) and resolve_name is not None:
            name = resolve_name(state.pending_face)
            if name is None:
                _track(session.cancel())
            else:
                _track(session.submit_name(name))

        if frames_dir is not None and isinstance(event, DetectionTick):
            width, height = viewport  # type: ignore[misc]
            frame = renderer.render(width, height, session.target)
            cv2.imwrite(str(frames_dir / f"frame_{stats['frames']:05d}.png"), frame)

    logger.info(
        f"Replayed {stats['records']} record(s): {len(stats['matches'])} match(es), "
        f"{len(stats['registrations'])} registration(s)"
    )

    return {
        "input": str(log_path),
        **stats,
        "final_state": session.state.to_dict(),
        "output_dir": str(frames_dir) if frames_dir is not None else None,
    }


def names_resolver(names: dict[str, str]) -> NameResolver:
    """Build a resolver answering the name dialog from a face id mapping.

    Face ids are compared as strings, since mapping files are JSON objects.
    """

    def _resolve(face: Face) -> Optional[str]:
        return names.get(str(face.face_id))

    return _resolve
