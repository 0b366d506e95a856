"""Tests for the registration session state machine."""
from __future__ import annotations

import logging
import threading

import pytest
from conftest import make_detection

from face_register.core.exceptions import (
    EmptyNameError,
    InvalidCommandError,
    InvalidTargetError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)
from face_register.core.registry import FaceRegistry
from face_register.core.registry_store import JsonRegistryStore
from face_register.core.session import (
    MISALIGNED_MESSAGE,
    AwaitingName,
    Cancel,
    ClearBox,
    CloseNameDialog,
    DetectionTick,
    DrawBox,
    Idle,
    Matched,
    OpenNameDialog,
    RegisterFace,
    RegistrationSession,
    Rejected,
    Scanning,
    ShowError,
    ShowInfo,
    StartScan,
    StartScanning,
    StopScanning,
    SubmitName,
    transition,
)
from face_register.core.session_manager import SessionManager
from face_register.core.types import DetectionResult, Rect


class _FailingStore(JsonRegistryStore):
    """Store whose writes always fail."""

    def save(self, entries):
        raise StorageError("disk full")


class TestTransition:
    """Tests for the pure transition function."""

    def _step(self, state, event, target, names=None):
        names = names or {}
        return transition(state, event, target=target, lookup=names.get, tolerance=0.1)

    def test_start_scan_from_idle(self, target):
        result = self._step(Idle(), StartScan(), target)
        assert result.state == Scanning()
        assert result.effects == (ClearBox(), StartScanning())

    def test_no_face_clears_box(self, target):
        result = self._step(Scanning(), DetectionTick(DetectionResult()), target)
        assert result.state == Scanning()
        assert result.effects == (ClearBox(),)

    def test_misaligned_face_keeps_scanning(self, target, misaligned_detection):
        result = self._step(Scanning(), DetectionTick(misaligned_detection), target)

        assert result.state == Scanning()
        assert result.effects[0] == DrawBox(misaligned_detection.primary.bounds)
        assert isinstance(result.effects[1], ShowInfo)
        assert result.effects[1].message == MISALIGNED_MESSAGE
        assert not result.has(StopScanning)

    def test_aligned_unknown_face_opens_dialog(self, target, aligned_detection):
        result = self._step(Scanning(), DetectionTick(aligned_detection), target)

        face = aligned_detection.primary
        assert result.state == AwaitingName(pending_face=face)
        assert result.effects == (DrawBox(face.bounds), StopScanning(), OpenNameDialog(face))

    def test_aligned_known_face_matches(self, target, aligned_detection):
        result = self._step(
            Scanning(), DetectionTick(aligned_detection), target, {"f1": "Alice"}
        )

        assert result.state == Matched(name="Alice")
        assert result.has(StopScanning)
        assert ShowInfo("Face Detected", "Name: Alice") in result.effects
        assert not result.has(OpenNameDialog)

    def test_only_first_face_is_evaluated(self, target):
        """A second, aligned face in the same frame is ignored."""
        detection = DetectionResult(
            faces=(
                make_detection("far", 400, 400, 50, 50).primary,
                make_detection("near", 100, 100, 200, 300).primary,
            )
        )
        result = self._step(Scanning(), DetectionTick(detection), target)
        assert result.state == Scanning()

    def test_invalid_target_rejects(self, aligned_detection):
        result = self._step(
            Scanning(), DetectionTick(aligned_detection), Rect(0, 0, 0, 0)
        )

        assert isinstance(result.state, Rejected)
        assert isinstance(result.error, InvalidTargetError)
        assert result.has(StopScanning)
        assert result.has(ShowError)

    @pytest.mark.parametrize(
        "state", [Idle(), Matched(name="Alice"), Rejected(reason="bad target")]
    )
    def test_stray_detection_is_ignored(self, state, target, aligned_detection):
        result = self._step(state, DetectionTick(aligned_detection), target)
        assert result.state == state
        assert result.effects == ()

    def test_submit_name_registers(self, target, aligned_detection):
        state = AwaitingName(pending_face=aligned_detection.primary)
        result = self._step(state, SubmitName("  Alice  "), target)

        assert result.state == Idle()
        assert result.effects == (
            RegisterFace(face_id="f1", name="Alice"),
            ShowInfo("Face Registered", "Name: Alice"),
            CloseNameDialog(),
        )

    @pytest.mark.parametrize("text", ["", "   "])
    def test_submit_blank_name_stays(self, target, aligned_detection, text):
        state = AwaitingName(pending_face=aligned_detection.primary)
        result = self._step(state, SubmitName(text), target)

        assert result.state == state
        assert isinstance(result.error, EmptyNameError)
        assert result.effects == (ShowError("Error", "Please enter a name for the face."),)

    def test_cancel_discards_pending_face(self, target, aligned_detection):
        state = AwaitingName(pending_face=aligned_detection.primary)
        result = self._step(state, Cancel(), target)
        assert result.state == Idle()
        assert result.effects == (CloseNameDialog(),)

    @pytest.mark.parametrize("event", [SubmitName("Alice"), Cancel()])
    @pytest.mark.parametrize("state", [Idle(), Scanning(), Matched(name="Alice")])
    def test_dialog_commands_need_pending_face(self, state, event, target):
        with pytest.raises(InvalidCommandError):
            self._step(state, event, target)

    def test_start_scan_while_awaiting_closes_dialog(self, target, aligned_detection):
        state = AwaitingName(pending_face=aligned_detection.primary)
        result = self._step(state, StartScan(), target)
        assert result.state == Scanning()
        assert result.effects == (CloseNameDialog(), ClearBox(), StartScanning())

    def test_unknown_event(self, target):
        with pytest.raises(TypeError):
            self._step(Idle(), object(), target)


class TestRegistrationSession:
    """End-to-end tests for RegistrationSession."""

    def test_starts_idle(self, session):
        assert session.state == Idle()

    def test_register_new_face(self, session, registry, aligned_detection):
        """Scan, align an unknown face, name it, and return to idle."""
        session.start_scan()
        result = session.detection_tick(aligned_detection)

        assert session.state == AwaitingName(pending_face=aligned_detection.primary)
        assert result.has(OpenNameDialog)

        result = session.submit_name("Alice")

        assert registry.lookup("f1") == "Alice"
        assert session.state == Idle()
        assert result.has(CloseNameDialog)
        assert result.has(ShowInfo)

    def test_known_face_matches_directly(self, session, registry, aligned_detection):
        registry.register("f1", "Alice")

        session.start_scan()
        result = session.detection_tick(aligned_detection)

        assert session.state == Matched(name="Alice")
        assert not result.has(OpenNameDialog)

    def test_rescan_after_match(self, session, registry, aligned_detection):
        registry.register("f1", "Alice")
        session.start_scan()
        session.detection_tick(aligned_detection)

        result = session.start_scan()

        assert session.state == Scanning()
        assert result.has(ClearBox)

    def test_registered_face_matches_on_next_scan(self, session, aligned_detection):
        session.start_scan()
        session.detection_tick(aligned_detection)
        session.submit_name("Alice")

        session.start_scan()
        session.detection_tick(aligned_detection)

        assert session.state == Matched(name="Alice")

    def test_empty_name_keeps_pending_face(self, session, registry, aligned_detection):
        session.start_scan()
        session.detection_tick(aligned_detection)

        result = session.submit_name("   ")

        assert isinstance(session.state, AwaitingName)
        assert isinstance(result.error, EmptyNameError)
        assert len(registry) == 0

    def test_cancel_returns_to_idle(self, session, registry, aligned_detection):
        session.start_scan()
        session.detection_tick(aligned_detection)

        session.cancel()

        assert session.state == Idle()
        assert len(registry) == 0

    def test_ticks_after_dialog_opened_are_dropped(self, session, aligned_detection):
        session.start_scan()
        session.detection_tick(aligned_detection)
        pending = session.state

        result = session.detection_tick(make_detection("f2", 100, 100, 200, 300))

        assert session.state == pending
        assert result.effects == ()

    def test_invalid_command_leaves_state(self, session):
        with pytest.raises(InvalidCommandError):
            session.submit_name("Alice")
        assert session.state == Idle()

    def test_invalid_target_rejects_then_recovers(self, registry, aligned_detection):
        session = RegistrationSession(target=Rect(0, 0, 0, 0), registry=registry)
        session.start_scan()

        result = session.detection_tick(aligned_detection)
        assert isinstance(session.state, Rejected)
        assert isinstance(result.error, InvalidTargetError)

        session.start_scan()
        assert session.state == Scanning()

    def test_invalid_tolerance(self, target):
        with pytest.raises(ValidationError):
            RegistrationSession(target=target, tolerance=-1)

    def test_storage_failure_keeps_registration(self, target, aligned_detection, tmp_path):
        """A failed save still registers in memory and reports an error."""
        registry = FaceRegistry(store=_FailingStore(tmp_path / "faces.json"))
        session = RegistrationSession(target=target, registry=registry)
        session.start_scan()
        session.detection_tick(aligned_detection)

        result = session.submit_name("Alice")

        assert session.state == Idle()
        assert registry.lookup("f1") == "Alice"
        assert isinstance(result.error, StorageError)
        assert result.effects[-1] == ShowError(
            "Storage Error", "Face registered but not saved."
        )

    def test_to_dict(self, session, aligned_detection):
        session.start_scan()
        session.detection_tick(aligned_detection)

        data = session.to_dict()

        assert data["session_id"] == "test"
        assert data["state"]["type"] == "awaiting_name"
        assert data["state"]["pending_face"]["face_id"] == "f1"
        assert data["target"] == {"x": 100, "y": 100, "width": 200, "height": 300}

    def test_logs_are_tagged_with_session_id(self, session, registry, aligned_detection, caplog):
        """Session log records carry the session id and a message prefix."""
        registry.register("f1", "Alice")

        with caplog.at_level(logging.DEBUG, logger="face_register"):
            session.start_scan()
            session.detection_tick(aligned_detection)

        records = [r for r in caplog.records if r.name == "face_register.session"]
        assert records
        assert all(r.session_id == "test" for r in records)
        assert "[session test] Matched 'Alice'" in [r.getMessage() for r in records]

    def test_concurrent_ticks_open_one_dialog(self, session, aligned_detection):
        """Concurrent deliveries leave exactly one face pending."""
        session.start_scan()
        results = []

        def deliver(face_id):
            results.append(
                session.detection_tick(make_detection(face_id, 105, 98, 195, 305))
            )

        threads = [threading.Thread(target=deliver, args=(f"f{i}",)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(1 for r in results if r.has(OpenNameDialog)) == 1
        assert isinstance(session.state, AwaitingName)


class TestSessionManager:
    """Tests for SessionManager."""

    def test_sessions_share_registry(self, registry, target, aligned_detection):
        manager = SessionManager(registry)
        first = manager.create_session(target)
        second = manager.create_session(target)

        first.start_scan()
        first.detection_tick(aligned_detection)
        first.submit_name("Alice")

        second.start_scan()
        second.detection_tick(aligned_detection)
        assert second.state == Matched(name="Alice")

    def test_get_and_remove(self, registry, target):
        manager = SessionManager(registry)
        session = manager.create_session(target)

        assert manager.get_session(session.session_id) is session
        manager.remove_session(session.session_id)

        with pytest.raises(SessionNotFoundError):
            manager.get_session(session.session_id)
        with pytest.raises(SessionNotFoundError):
            manager.remove_session(session.session_id)

    def test_oldest_session_evicted(self, registry, target):
        manager = SessionManager(registry, max_sessions=2)
        first = manager.create_session(target)
        manager.create_session(target)
        manager.create_session(target)

        assert manager.get_session_count() == 2
        with pytest.raises(SessionNotFoundError):
            manager.get_session(first.session_id)
