#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Decrypted notification payloads, the typed events built from them, and the
dispatcher that delivers events to registered listeners.
"""

from __future__ import annotations

import datetime
import struct

from .internal_types import *
from .pkg_logging import logger
from .exceptions import IdentityMismatchError, PacketError
from .constants import INTERCOM_ID_LENGTH, EVENT_TAG_LENGTH, MOTION_EVENT_TAG, PAYLOAD_SIZE

class NotificationPayload:
    """The 18-byte plaintext of a notification:

        0   intercom id (6, text; the first 6 characters of the device username)
        6   event tag (8, text, space padded; "motion" or a doorbell event name)
        14  timestamp (4, big-endian signed POSIX seconds, UTC)
    """

    intercom_id: str
    event_tag: str
    """The event tag with padding removed."""

    epoch_seconds: int

    def __init__(self, intercom_id: str, event_tag: str, epoch_seconds: int):
        self.intercom_id = intercom_id
        self.event_tag = event_tag
        self.epoch_seconds = epoch_seconds

    @classmethod
    def decode(cls, plaintext: bytes) -> NotificationPayload:
        if len(plaintext) < PAYLOAD_SIZE:
            raise PacketError(f"Notification payload must be {PAYLOAD_SIZE} bytes, got {len(plaintext)}")
        raw_id, raw_tag, epoch_seconds = struct.unpack_from('!6s8si', plaintext)
        # Garbage from a wrong key is not valid UTF-8 more often than not; it must still
        # fall through to the identity check rather than raise.
        intercom_id = raw_id.decode('utf-8', errors='replace')
        event_tag = raw_tag.decode('utf-8', errors='replace').strip()
        return cls(intercom_id, event_tag, epoch_seconds)

    def encode(self) -> bytes:
        """Packs the payload into its 18-byte plaintext.

        Raises:
            PacketError: A field does not fit its width (6-byte id, 8-byte tag, int32 timestamp).
        """
        raw_id = self.intercom_id.encode('utf-8')
        if len(raw_id) > INTERCOM_ID_LENGTH:
            raise PacketError(f"Intercom id {self.intercom_id!r} exceeds {INTERCOM_ID_LENGTH} bytes")
        raw_tag = self.event_tag.encode('utf-8')
        if len(raw_tag) > EVENT_TAG_LENGTH:
            raise PacketError(f"Event tag {self.event_tag!r} exceeds {EVENT_TAG_LENGTH} bytes")
        try:
            return struct.pack('!6s8si', raw_id, raw_tag.ljust(EVENT_TAG_LENGTH, b' '), self.epoch_seconds)
        except struct.error as e:
            raise PacketError(f"Timestamp {self.epoch_seconds} does not fit a signed 32-bit value: {e}") from e

    @property
    def timestamp(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.epoch_seconds, tz=datetime.timezone.utc)

    def __str__(self) -> str:
        return f"NotificationPayload(intercom_id='{self.intercom_id}', event_tag='{self.event_tag}', epoch_seconds={self.epoch_seconds})"

    def __repr__(self) -> str:
        return str(self)

class MotionEvent:
    """The motion sensor of the device was triggered."""

    intercom_id: str
    timestamp: datetime.datetime

    def __init__(self, intercom_id: str, timestamp: datetime.datetime):
        self.intercom_id = intercom_id
        self.timestamp = timestamp

    def to_jsonable(self) -> JsonableDict:
        return {
            "type": "motion",
            "intercom_id": self.intercom_id,
            "timestamp": self.timestamp.isoformat(),
          }

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, MotionEvent) and
                self.intercom_id == other.intercom_id and
                self.timestamp == other.timestamp)

    def __hash__(self) -> int:
        return hash((self.intercom_id, self.timestamp))

    def __str__(self) -> str:
        return f"MotionEvent(intercom_id='{self.intercom_id}', timestamp={self.timestamp.isoformat()})"

    def __repr__(self) -> str:
        return str(self)

class RingEvent:
    """A doorbell button was pressed. `event` names the button's configured event."""

    intercom_id: str
    event: str
    timestamp: datetime.datetime

    def __init__(self, intercom_id: str, event: str, timestamp: datetime.datetime):
        self.intercom_id = intercom_id
        self.event = event
        self.timestamp = timestamp

    def to_jsonable(self) -> JsonableDict:
        return {
            "type": "ring",
            "intercom_id": self.intercom_id,
            "event": self.event,
            "timestamp": self.timestamp.isoformat(),
          }

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, RingEvent) and
                self.intercom_id == other.intercom_id and
                self.event == other.event and
                self.timestamp == other.timestamp)

    def __hash__(self) -> int:
        return hash((self.intercom_id, self.event, self.timestamp))

    def __str__(self) -> str:
        return f"RingEvent(intercom_id='{self.intercom_id}', event='{self.event}', timestamp={self.timestamp.isoformat()})"

    def __repr__(self) -> str:
        return str(self)

NotificationEvent = Union[MotionEvent, RingEvent]

RingListener = Callable[[RingEvent], None]
"""A callback for received doorbell events."""

MotionListener = Callable[[MotionEvent], None]
"""A callback for received motion events."""

def verify_device_identity(payload: NotificationPayload, username: str) -> bool:
    """Returns True if a decrypted payload was sent by the device owning `username`.

    This content match is the only authentication the notification protocol offers.
    """
    return payload.intercom_id == username[:INTERCOM_ID_LENGTH]

def authenticate_payload(plaintext: bytes, username: str) -> NotificationPayload:
    """Decodes a decrypted payload and verifies the device identity.

    Raises:
        IdentityMismatchError: The payload was not sent by the configured device (or was
                               decrypted with the wrong key).
    """
    payload = NotificationPayload.decode(plaintext)
    if not verify_device_identity(payload, username):
        raise IdentityMismatchError(f"Notification intercom id {payload.intercom_id!r} does not match configured user")
    return payload

def event_from_payload(payload: NotificationPayload) -> NotificationEvent:
    if payload.event_tag == MOTION_EVENT_TAG:
        return MotionEvent(payload.intercom_id, payload.timestamp)
    return RingEvent(payload.intercom_id, payload.event_tag, payload.timestamp)

class NotificationEventDispatcher:
    """
    Validates decrypted notification payloads against the configured device and
    delivers the resulting events to registered listeners.

    Listeners are called synchronously in registration order. An exception raised by
    one listener is logged and does not prevent delivery to the others.
    """

    username: str

    ring_listeners: Dict[int, RingListener]
    """Registered doorbell listeners, indexed by ID number."""

    motion_listeners: Dict[int, MotionListener]
    """Registered motion listeners, indexed by ID number."""

    i_next_listener: int = 0
    """The next listener ID to assign."""

    def __init__(self, username: str):
        self.username = username
        self.ring_listeners = {}
        self.motion_listeners = {}

    def register_ring_listener(self, listener: RingListener) -> int:
        """Adds a listener to be called for each doorbell event. Returns an ID for remove_listener()."""
        i = self.i_next_listener
        self.i_next_listener += 1
        self.ring_listeners[i] = listener
        return i

    def register_motion_listener(self, listener: MotionListener) -> int:
        """Adds a listener to be called for each motion event. Returns an ID for remove_listener()."""
        i = self.i_next_listener
        self.i_next_listener += 1
        self.motion_listeners[i] = listener
        return i

    def remove_listener(self, i: int) -> None:
        """Removes a previously registered ring or motion listener.

        Raises:
            KeyError: No listener is registered with ID i.
        """
        if i in self.ring_listeners:
            del self.ring_listeners[i]
        else:
            del self.motion_listeners[i]

    def dispatch(self, plaintext: bytes) -> Optional[NotificationEvent]:
        """Authenticates a decrypted payload and delivers the event it carries.

        Returns the delivered event, or None if the payload did not come from the
        configured device. Rejection is silent: on a shared network, notifications
        for other devices are expected.
        """
        try:
            payload = authenticate_payload(plaintext, self.username)
        except IdentityMismatchError as e:
            logger.debug(f"Dropping notification: {e}")
            return None
        event = event_from_payload(payload)
        logger.debug(f"Dispatching {event}")
        if isinstance(event, MotionEvent):
            for motion_listener in list(self.motion_listeners.values()):
                try:
                    motion_listener(event)
                except Exception as e:
                    logger.warning(f"Motion listener raised exception processing {event}: {e}")
        else:
            for ring_listener in list(self.ring_listeners.values()):
                try:
                    ring_listener(event)
                except Exception as e:
                    logger.warning(f"Ring listener raised exception processing {event}: {e}")
        return event
