"""Test the disk space change subscribers."""

import pytest

from diskmonitor.models import DiskSpaceSignal
from diskmonitor.notifiers.notices import (
    LogSink,
    NotificationSink,
    build_notification_url,
)

SIGNAL = DiskSpaceSignal("org.diskmonitor.signal", "disk_space_change_ind", "/", 97)


class FakeApprise:
    def __init__(self, result=True):
        self.servers = []
        self.sent = []
        self.result = result

    def add(self, url):
        self.servers.append(url)

    def notify(self, title, body):
        self.sent.append((title, body))
        return self.result


@pytest.fixture
def fake_apprise(monkeypatch):
    instance = FakeApprise()
    monkeypatch.setattr("diskmonitor.notifiers.notices.apprise.Apprise", lambda: instance)
    return instance


def test_build_url_from_uri():
    assert build_notification_url({"type": "slack", "uri": "slack://a/b/c"}) == "slack://a/b/c"


def test_build_telegram_url():
    url = build_notification_url({"type": "telegram", "token": "t", "chat_id": "42"})
    assert url == "tgram://t/42"


def test_telegram_requires_credentials():
    with pytest.raises(ValueError):
        build_notification_url({"type": "telegram", "token": "t"})


def test_unsupported_type():
    with pytest.raises(ValueError):
        build_notification_url({"type": "pigeon"})


def test_sink_sends_through_configured_channels(fake_apprise):
    sink = NotificationSink(
        [
            {"type": "console"},
            {"type": "telegram", "token": "t", "chat_id": "1"},
            {"type": "json", "uri": "json://localhost", "enabled": False},
            {"type": "pigeon"},
        ],
        hostname="box",
    )

    sink(SIGNAL)

    assert fake_apprise.servers == ["tgram://t/1"]
    assert fake_apprise.sent == [("Disk space warning on box", "Mount: /\nUsed: 97%")]


def test_sink_without_channels_sends_nothing(fake_apprise):
    NotificationSink([], hostname="box")(SIGNAL)
    assert fake_apprise.sent == []


def test_notification_failure_is_not_raised(fake_apprise):
    def broken(title, body):
        raise RuntimeError("network down")

    fake_apprise.notify = broken
    sink = NotificationSink([{"type": "json", "uri": "json://localhost"}], hostname="box")

    sink(SIGNAL)


def test_log_sink_accepts_signal():
    LogSink()(SIGNAL)
