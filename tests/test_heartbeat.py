"""Test the timer based heartbeat service."""

import threading

from diskmonitor.core.heartbeat import TimerHeartbeat, wakeup_delay
from diskmonitor.models import ScheduleRequest, WakeupFired


def test_delay_aligned_to_slot_inside_window():
    request = ScheduleRequest.for_interval(300)
    # now + 300 = 1010 -> next 30 s boundary is 1020
    assert wakeup_delay(request, now=710, slot_seconds=30) == 310


def test_delay_on_boundary_uses_minimum():
    request = ScheduleRequest.for_interval(300)
    assert wakeup_delay(request, now=600, slot_seconds=30) == 300


def test_delay_falls_back_to_minimum_when_slot_outside_window():
    request = ScheduleRequest(min_delay_seconds=10, max_delay_seconds=20)
    assert wakeup_delay(request, now=1, slot_seconds=3600) == 10


def test_alignment_disabled():
    request = ScheduleRequest.for_interval(1800)
    assert wakeup_delay(request, now=123.4, slot_seconds=0) == 1800


def test_new_request_supersedes_pending_wakeup():
    fired = []
    heartbeat = TimerHeartbeat(fired.append, slot_seconds=0)

    heartbeat.schedule_wakeup(ScheduleRequest(3600, 3720))
    first = heartbeat._timer
    heartbeat.schedule_wakeup(ScheduleRequest(3600, 3720))

    assert first.finished.is_set()
    assert heartbeat.pending
    heartbeat.cancel()
    assert not heartbeat.pending
    assert fired == []


def test_wakeup_fires_once():
    fired = threading.Event()
    events = []

    def post(event):
        events.append(event)
        fired.set()

    heartbeat = TimerHeartbeat(post, slot_seconds=0)
    heartbeat.schedule_wakeup(ScheduleRequest(0, 120))

    assert fired.wait(timeout=5)
    assert events == [WakeupFired()]
    assert not heartbeat.pending
