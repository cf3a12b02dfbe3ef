"""Test the wired disk monitor service end to end."""

import pytest

from conftest import RecordingProber
from diskmonitor.core.bus import (
    ACTIVITY_SIGNAL_INTERFACE,
    BOOT_DONE,
    BOOT_SIGNAL_INTERFACE,
    REQ_CHECK,
    REQUEST_INTERFACE,
    SYSTEM_INACTIVITY_IND,
)
from diskmonitor.core.service import DiskMonitorService
from diskmonitor.models import ProbeResult, ScheduleRequest


@pytest.fixture
def service(clock):
    config = {"boot": {"assume_completed": False}, "heartbeat": {"slot_seconds": 0}}
    service = DiskMonitorService(config, prober=RecordingProber(), clock=clock)
    requests = []
    service.heartbeat.schedule_wakeup = requests.append
    service.requests = requests
    service.prober.post = service.loop.post
    service.prober.results = [ProbeResult("/", 96), ProbeResult("/data", 99)]
    received = []
    service.bus.subscribe(received.append)
    service.received = received
    yield service
    service.stop()


def test_start_arms_first_wakeup(service):
    service.start()
    assert service.requests == [ScheduleRequest(1800, 1920)]
    assert service.bus.connected


def test_check_request_over_bus_before_boot(service):
    service.start()
    reply = service.bus.call_method(REQUEST_INTERFACE, REQ_CHECK)
    service.loop.run_pending()

    assert reply.done()
    assert service.prober.calls == 0
    assert service.received == []


def test_signals_drive_probe_and_relay(service):
    service.start()
    service.bus.send_signal(BOOT_SIGNAL_INTERFACE, BOOT_DONE)
    service.bus.send_signal(ACTIVITY_SIGNAL_INTERFACE, SYSTEM_INACTIVITY_IND, 0)
    service.loop.run_pending()

    assert service.state.device_active is True
    assert service.prober.calls == 1
    assert service.requests[-1] == ScheduleRequest(300, 420)
    assert [(s.mount_path, s.percent_used) for s in service.received] == [
        ("/", 96),
        ("/data", 99),
    ]


def test_assumed_boot_completion(clock):
    service = DiskMonitorService(
        {"boot": {"assume_completed": True}}, prober=RecordingProber(), clock=clock
    )
    service.heartbeat.schedule_wakeup = lambda request: None
    service.start()

    reply = service.request_check()
    service.loop.run_pending()
    service.stop()

    assert reply.done()
    assert service.state.boot_completed is True
    assert service.prober.calls == 1


def test_stop_disconnects_bus(service):
    service.start()
    service.stop()
    assert not service.bus.connected
