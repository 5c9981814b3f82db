"""Tests for portmon data models."""

from portmon.models import AppType, Classification, ConnectionState, KillResult


def test_process_record_creation(make_record):
    """Test ProcessRecord dataclass creation."""
    record = make_record(
        123,
        ports=(8080,),
        name="test_process",
        cpu_percent=50.0,
        memory_bytes=1024000,
    )

    assert record.pid == 123
    assert record.name == "test_process"
    assert record.owner == "alice"
    assert record.working_directory == "/home/alice"
    assert record.classification is Classification.OWNED_BY_CURRENT_USER
    assert record.app_type is AppType.BINARY
    assert record.connections[0].port == 8080
    assert record.connections[0].state is ConnectionState.LISTENING
    assert record.cpu_percent == 50.0
    assert record.memory_bytes == 1024000


def test_process_record_is_frozen(make_record):
    """Test that ProcessRecord is immutable (frozen)."""
    record = make_record(1)

    try:
        record.pid = 999
        raise AssertionError("Should have raised FrozenInstanceError")
    except AttributeError:
        pass  # Expected behavior for frozen dataclass


def test_process_record_uses_slots(make_record):
    """Test that ProcessRecord uses __slots__ for memory efficiency."""
    record = make_record(1)

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(record, "__dict__")


def test_snapshot_find(make_record, make_snapshot):
    """Test ProcessSnapshot.find looks records up by pid."""
    snapshot = make_snapshot(make_record(1), make_record(2, name="other"))

    assert snapshot.find(2).name == "other"
    assert snapshot.find(3) is None


def test_snapshot_is_frozen(make_snapshot):
    snapshot = make_snapshot()
    try:
        snapshot.records = ()
        raise AssertionError("Should have raised FrozenInstanceError")
    except AttributeError:
        pass


def test_app_type_labels():
    """Test AppType values double as display labels."""
    assert AppType.GUI_APP.value == "GUI App"
    assert AppType.DEV_TOOL.value == "Dev Tool"
    assert AppType.BINARY.value == "Binary"
    assert AppType.UNKNOWN.value == "Unknown"


def test_kill_result_failed_count():
    result = KillResult(attempted=3, succeeded=2, first_error=RuntimeError("boom"))
    assert result.failed == 1
