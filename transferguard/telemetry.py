"""
Tenant-safe telemetry.

Span events carry counts, latencies and categorical values only. No
organization ids, recipient names or country data leave the process.
"""
import logging
from typing import Literal, Optional

from opentelemetry.trace import get_current_span

from transferguard.config import get_settings

logger = logging.getLogger("transferguard.telemetry")


def init_telemetry(connection_string: Optional[str] = None):
    """
    Initialize Azure Application Insights via OpenTelemetry.
    Disabled when no connection string is configured (local / tests).
    """
    connection_string = connection_string or get_settings().appinsights_connection_string
    if not connection_string:
        return

    from azure.monitor.opentelemetry import configure_azure_monitor

    configure_azure_monitor(connection_string=connection_string)
    logger.info("Telemetry exporter configured")


def emit_scan_telemetry(
    scan_latency_ms: int,
    transfer_count: int,
    scan_scope: Literal["organization", "activity"],
):
    assert isinstance(scan_latency_ms, int), "scan_latency_ms must be int"
    assert isinstance(transfer_count, int), "transfer_count must be int"
    assert scan_scope in ("organization", "activity"), f"scan_scope must be 'organization' or 'activity', got {scan_scope}"

    span = get_current_span()
    if not span or not span.is_recording():
        return

    span.add_event(
        name="transferguard.scan",
        attributes={
            "scan_latency_ms": scan_latency_ms,
            "transfer_count": transfer_count,
            "scan_scope": scan_scope,
        },
    )


def emit_validation_telemetry(is_valid: bool, error_count: int, warning_count: int):
    span = get_current_span()
    if not span or not span.is_recording():
        return

    span.add_event(
        name="transferguard.validation",
        attributes={
            "is_valid": is_valid,
            "error_count": error_count,
            "warning_count": warning_count,
        },
    )
