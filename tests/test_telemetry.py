import pytest

from transferguard.config import Settings, load_settings
from transferguard.telemetry import emit_scan_telemetry, emit_validation_telemetry, init_telemetry


def test_emit_scan_telemetry_does_not_crash():
    """
    Telemetry must no-op safely when no span is active (local / tests).
    """
    emit_scan_telemetry(scan_latency_ms=12, transfer_count=3, scan_scope="organization")
    emit_scan_telemetry(scan_latency_ms=0, transfer_count=0, scan_scope="activity")
    emit_validation_telemetry(is_valid=False, error_count=1, warning_count=0)


def test_scan_telemetry_rejects_unknown_scope():
    with pytest.raises(AssertionError):
        emit_scan_telemetry(scan_latency_ms=1, transfer_count=1, scan_scope="tenant")


def test_scan_event_attributes(mocker):
    span = mocker.Mock()
    span.is_recording.return_value = True
    mocker.patch("transferguard.telemetry.get_current_span", return_value=span)

    emit_scan_telemetry(scan_latency_ms=7, transfer_count=2, scan_scope="activity")

    span.add_event.assert_called_once_with(
        name="transferguard.scan",
        attributes={"scan_latency_ms": 7, "transfer_count": 2, "scan_scope": "activity"},
    )


def test_init_telemetry_disabled_without_connection_string(mocker):
    mocker.patch("transferguard.telemetry.get_settings", return_value=Settings())
    configure = mocker.patch("azure.monitor.opentelemetry.configure_azure_monitor")

    init_telemetry(connection_string=None)

    configure.assert_not_called()


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("TRANSFERGUARD_LOG_LEVEL", "debug")
    monkeypatch.setenv("TRANSFERGUARD_SCAN_TIMEOUT_SECONDS", "2.5")

    settings = load_settings()

    assert settings.log_level == "DEBUG"
    assert settings.scan_timeout_seconds == 2.5


def test_invalid_timeout_is_rejected(monkeypatch):
    monkeypatch.setenv("TRANSFERGUARD_SCAN_TIMEOUT_SECONDS", "-1")

    with pytest.raises(ValueError):
        load_settings()
