"""Test the bus bindings of the disk monitor."""

import pytest

from diskmonitor.core.bus import (
    ACTIVITY_SIGNAL_INTERFACE,
    BOOT_DONE,
    BOOT_SIGNAL_INTERFACE,
    REQ_CHECK,
    REQUEST_INTERFACE,
    SYSTEM_INACTIVITY_IND,
    BusError,
    LocalBus,
)
from diskmonitor.core.gateway import BusGateway
from diskmonitor.models import ActivityChanged, BootCompleted, CheckRequested


@pytest.fixture
def posted():
    return []


@pytest.fixture
def gateway(posted):
    bus = LocalBus()
    gateway = BusGateway(bus, posted.append)
    gateway.attach()
    bus.connect()
    return gateway


def test_req_check_posts_request_with_pending_reply(gateway, posted):
    reply = gateway.bus.call_method(REQUEST_INTERFACE, REQ_CHECK)

    assert len(posted) == 1
    assert isinstance(posted[0], CheckRequested)
    assert posted[0].reply is reply
    assert not reply.done()


def test_boot_done_signal(gateway, posted):
    gateway.bus.send_signal(BOOT_SIGNAL_INTERFACE, BOOT_DONE)
    assert posted == [BootCompleted()]


@pytest.mark.parametrize(
    "inactive, active",
    [(0, True), (1, False), (2, False), (-1, False)],
)
def test_inactivity_signal_is_inverted(gateway, posted, inactive, active):
    gateway.bus.send_signal(ACTIVITY_SIGNAL_INTERFACE, SYSTEM_INACTIVITY_IND, inactive)
    assert posted == [ActivityChanged(active=active)]


def test_handlers_unbound_on_disconnect(gateway, posted):
    gateway.bus.disconnect()

    assert gateway.methods_bound is False
    assert gateway.signals_bound is False
    with pytest.raises(BusError):
        gateway.bus.call_method(REQUEST_INTERFACE, REQ_CHECK)
    assert gateway.bus.send_signal(BOOT_SIGNAL_INTERFACE, BOOT_DONE) == 0
    assert posted == []


def test_reconnect_binds_handlers_once(gateway, posted):
    gateway.bus.disconnect()
    gateway.bus.connect()
    gateway.on_connect()

    gateway.bus.send_signal(BOOT_SIGNAL_INTERFACE, BOOT_DONE)

    assert posted == [BootCompleted()]
