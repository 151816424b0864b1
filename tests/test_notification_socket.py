"""Tests for the notification socket: binding, burst suppression, key resolution,
dispatch and shutdown."""
import asyncio
import datetime
import socket

import pytest

from doorbird_lan_api import (
    DoorbirdNotificationSocket,
    NotificationBindError,
    MotionEvent,
    RingEvent,
    KeyFetchError,
    SocketState,
)
from doorbird_lan_api.simulator import make_payload, make_v1_notification, make_v2_notification, send_datagram

USERNAME = 'ghabcd0001'
PASSWORD = 'QzT3jeK3JY'
SESSION_KEY_TEXT = 'BHYGHyRKtGzBjku2t2jX2UKidXYQ3VqmfbKoCtxXJ6O4lgSzpgIwZ6onrSh'
SESSION_KEY = SESSION_KEY_TEXT.encode('utf-8')[:32]
NEW_YEAR = datetime.datetime(2021, 1, 1, tzinfo=datetime.timezone.utc)


async def fetch_session():
    return {'BHA': {'SESSIONID': 'abc', 'NOTIFICATION_ENCRYPTION_KEY': SESSION_KEY_TEXT}}


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_socket(**kwargs) -> DoorbirdNotificationSocket:
    kwargs.setdefault('bind_address', '127.0.0.1')
    return DoorbirdNotificationSocket(0, USERNAME, PASSWORD, **kwargs)


def test_bound_on_construction():
    notify_socket = make_socket()
    try:
        assert notify_socket.state is SocketState.BOUND
        assert notify_socket.port != 0
    finally:
        notify_socket.close()
    assert notify_socket.state is SocketState.CLOSED
    notify_socket.close()


def test_bind_failure():
    """A port that is already taken raises NotificationBindError carrying the port."""
    blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        blocker.bind(('127.0.0.1', 0))
        port = blocker.getsockname()[1]
        with pytest.raises(NotificationBindError) as exc_info:
            DoorbirdNotificationSocket(port, USERNAME, PASSWORD, bind_address='127.0.0.1')
        assert exc_info.value.port == port
    finally:
        blocker.close()


def test_ignores_foreign_datagrams():
    async def main():
        notify_socket = make_socket()
        try:
            assert notify_socket.accept_datagram(b'') is None
            assert notify_socket.accept_datagram(b'hello world') is None
            assert notify_socket.accept_datagram(b'\xDE\xAD\xBE\x09' + b'\x00' * 66) is None
            assert notify_socket.accept_datagram(b'\xDE\xAD\xBE\x02' + b'\x00' * 10) is None
            assert len(notify_socket.pending_tasks) == 0
        finally:
            notify_socket.close()

    asyncio.run(main())


def test_motion_then_ring_v2():
    """Valid notifications become typed events for the matching listeners."""
    motion_events = []
    ring_events = []

    async def main():
        notify_socket = make_socket(session_fetcher=fetch_session)
        notify_socket.register_motion_listener(motion_events.append)
        notify_socket.register_ring_listener(ring_events.append)
        try:
            notify_socket.accept_datagram(make_v2_notification(SESSION_KEY, make_payload(USERNAME, 'motion', NEW_YEAR)))
            await notify_socket.drain()
            notify_socket.accept_datagram(make_v2_notification(SESSION_KEY, make_payload(USERNAME, '1', NEW_YEAR)))
            await notify_socket.drain()
        finally:
            notify_socket.close()
        return notify_socket

    notify_socket = asyncio.run(main())

    assert motion_events == [MotionEvent('ghabcd', NEW_YEAR)]
    assert ring_events == [RingEvent('ghabcd', '1', NEW_YEAR)]
    assert notify_socket.key_provider.session_fetch_count == 1


def test_v1_notification():
    motion_events = []

    async def main():
        notify_socket = make_socket()
        notify_socket.register_motion_listener(motion_events.append)
        try:
            datagram = make_v1_notification(PASSWORD, make_payload(USERNAME, 'motion', NEW_YEAR))
            task = notify_socket.accept_datagram(datagram)
            assert task is not None
            return await task
        finally:
            await notify_socket.wait_closed()

    event = asyncio.run(main())

    assert event == MotionEvent('ghabcd', NEW_YEAR)
    assert motion_events == [event]


def test_other_device_is_silently_dropped():
    events = []
    errors = []

    async def main():
        notify_socket = make_socket(session_fetcher=fetch_session, error_handler=errors.append)
        notify_socket.register_motion_listener(events.append)
        notify_socket.register_ring_listener(events.append)
        try:
            notify_socket.accept_datagram(make_v2_notification(SESSION_KEY, make_payload('zzzzzz0001', 'motion', NEW_YEAR)))
            notify_socket.accept_datagram(make_v2_notification(b'\x07' * 32, make_payload(USERNAME, 'motion', NEW_YEAR)))
            await notify_socket.drain()
        finally:
            notify_socket.close()

    asyncio.run(main())

    assert events == []
    assert errors == []


def test_suppress_bursts():
    """A second datagram 100 ms after the first is dropped; one 1100 ms later is accepted."""
    events = []
    clock = FakeClock()

    async def main():
        notify_socket = make_socket(session_fetcher=fetch_session, suppress_bursts=True, clock=clock)
        notify_socket.register_ring_listener(events.append)
        datagram = make_v2_notification(SESSION_KEY, make_payload(USERNAME, '1', NEW_YEAR))
        try:
            assert notify_socket.accept_datagram(datagram) is not None
            clock.now += 0.1
            assert notify_socket.accept_datagram(datagram) is None
            clock.now += 1.1
            assert notify_socket.accept_datagram(datagram) is not None
            await notify_socket.drain()
        finally:
            notify_socket.close()

    asyncio.run(main())

    assert len(events) == 2


def test_no_suppression_by_default():
    events = []
    clock = FakeClock()

    async def main():
        notify_socket = make_socket(session_fetcher=fetch_session, clock=clock)
        notify_socket.register_ring_listener(events.append)
        datagram = make_v2_notification(SESSION_KEY, make_payload(USERNAME, '1', NEW_YEAR))
        try:
            notify_socket.accept_datagram(datagram)
            notify_socket.accept_datagram(datagram)
            await notify_socket.drain()
        finally:
            notify_socket.close()

    asyncio.run(main())

    assert len(events) == 2


def test_concurrent_v2_packets_share_one_fetch():
    events = []
    fetch_count = 0

    async def slow_fetch_session():
        nonlocal fetch_count
        fetch_count += 1
        await asyncio.sleep(0.01)
        return await fetch_session()

    async def main():
        notify_socket = make_socket(session_fetcher=slow_fetch_session)
        notify_socket.register_ring_listener(events.append)
        try:
            for _ in range(3):
                notify_socket.accept_datagram(make_v2_notification(SESSION_KEY, make_payload(USERNAME, '1', NEW_YEAR)))
            await notify_socket.drain()
        finally:
            notify_socket.close()

    asyncio.run(main())

    assert fetch_count == 1
    assert len(events) == 3


def test_key_fetch_error_reported():
    errors = []
    events = []

    async def failing_fetch_session():
        raise ConnectionError("device unreachable")

    async def main():
        notify_socket = make_socket(session_fetcher=failing_fetch_session, error_handler=errors.append)
        notify_socket.register_ring_listener(events.append)
        try:
            notify_socket.accept_datagram(make_v2_notification(SESSION_KEY, make_payload(USERNAME, '1', NEW_YEAR)))
            await notify_socket.drain()
        finally:
            notify_socket.close()

    asyncio.run(main())

    assert events == []
    assert len(errors) == 1
    assert isinstance(errors[0], KeyFetchError)


def test_no_dispatch_after_close():
    """Datagrams still being decrypted when the socket closes never reach listeners."""
    events = []

    async def main():
        release = asyncio.Event()

        async def blocked_fetch_session():
            await release.wait()
            return await fetch_session()

        notify_socket = make_socket(session_fetcher=blocked_fetch_session)
        notify_socket.register_ring_listener(events.append)
        task = notify_socket.accept_datagram(make_v2_notification(SESSION_KEY, make_payload(USERNAME, '1', NEW_YEAR)))
        assert task is not None
        await asyncio.sleep(0)
        notify_socket.close()
        release.set()
        result = await task
        assert notify_socket.accept_datagram(make_v2_notification(SESSION_KEY, make_payload(USERNAME, '1', NEW_YEAR))) is None
        return result

    assert asyncio.run(main()) is None
    assert events == []


def test_loopback_delivery():
    """A datagram sent over UDP loopback is received, decrypted and dispatched."""

    async def main():
        loop = asyncio.get_running_loop()
        received = loop.create_future()

        def on_motion(event):
            if not received.done():
                received.set_result(event)

        async with make_socket(session_fetcher=fetch_session) as notify_socket:
            notify_socket.register_motion_listener(on_motion)
            datagram = make_v2_notification(SESSION_KEY, make_payload(USERNAME, 'motion', NEW_YEAR))
            await send_datagram(datagram, ('127.0.0.1', notify_socket.port))
            event = await asyncio.wait_for(received, timeout=5.0)
        assert notify_socket.state is SocketState.CLOSED
        return event

    assert asyncio.run(main()) == MotionEvent('ghabcd', NEW_YEAR)


CAPTURED_V2 = bytes([
    0xDE, 0xAD, 0xBE, 0x02, 0x96, 0x13, 0x80, 0xD4, 0x62, 0x2E, 0xBE, 0xE7, 0x2A, 0x9F, 0xC3, 0xFF,
    0x0B, 0xEF, 0x62, 0x64, 0xF2, 0xAE, 0x91, 0x94, 0x92, 0x14, 0x8B, 0xBD, 0x30, 0xEB, 0x05, 0xBD,
    0xCE, 0x36, 0x7C, 0x33, 0xD4, 0x29, 0x3F, 0xAF, 0xE0, 0x60, 0x45, 0x9E, 0x65, 0x10,
])


def test_captured_v2_notification():
    """A notification captured from a device yields exactly one doorbell event."""
    ring_events = []
    motion_events = []

    async def main():
        notify_socket = DoorbirdNotificationSocket(
            0, 'ghikzi0001', 'unused', bind_address='127.0.0.1', session_fetcher=fetch_session)
        notify_socket.register_ring_listener(ring_events.append)
        notify_socket.register_motion_listener(motion_events.append)
        try:
            assert notify_socket.accept_datagram(CAPTURED_V2) is not None
            await notify_socket.drain()
        finally:
            notify_socket.close()

    asyncio.run(main())

    timestamp = datetime.datetime.fromtimestamp(1699550033, tz=datetime.timezone.utc)
    assert ring_events == [RingEvent('ghikzi', '1', timestamp)]
    assert motion_events == []
