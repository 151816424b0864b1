# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package doorbird_lan_api implements a client for the DoorBird LAN API.

DoorBird video door intercoms expose two interfaces on the local network:

  1. An HTTP Control API (/bha-api/*.cgi) for device information, relays, lights,
     favorites, schedules and SIP settings.
  2. Encrypted UDP event notifications, broadcast to ports 6524 and 35344 whenever
     a doorbell button is pressed or the motion sensor is triggered.

Notification datagrams carry no verifiable signature in practice; a notification is
accepted when it decrypts to a payload whose device id matches the first six
characters of the configured username. Version 1 notifications are keyed by an
Argon2i stretch of the device password; version 2 notifications are keyed by a
session key fetched once from the Control API.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict

from .exceptions import (
    DoorbirdError,
    PacketError,
    NotApplicableError,
    MalformedPacketError,
    KeyProviderError,
    KeyDerivationError,
    KeyFetchError,
    DecryptError,
    IdentityMismatchError,
    NotificationBindError,
    ControlApiError,
    ConfigError,
  )

from .notification_packet import (
    NotificationPacket,
    NotificationPacketV1,
    NotificationPacketV2,
    parse_notification_packet,
  )
from .notification_cipher import decrypt_notification, encrypt_notification
from .notification_events import (
    NotificationPayload,
    NotificationEvent,
    MotionEvent,
    RingEvent,
    RingListener,
    MotionListener,
    NotificationEventDispatcher,
    verify_device_identity,
    authenticate_payload,
  )
from .key_provider import (
    NotificationKeyProvider,
    SessionFetcher,
    client_session_fetcher,
    extract_notification_key,
    stretch_password,
  )
from .notification_socket import DoorbirdNotificationSocket, SocketState, ErrorHandler
from .control_api import DoorbirdClient, Scheme, FavoriteType
from .constants import DOORBIRD_NOTIFY_PORT, DOORBIRD_NOTIFY_ALT_PORT, UDP_IDENTIFIER

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict',
    'DoorbirdError', 'PacketError', 'NotApplicableError', 'MalformedPacketError',
    'KeyProviderError', 'KeyDerivationError', 'KeyFetchError', 'DecryptError',
    'IdentityMismatchError', 'NotificationBindError', 'ControlApiError', 'ConfigError',
    'NotificationPacket', 'NotificationPacketV1', 'NotificationPacketV2', 'parse_notification_packet',
    'decrypt_notification', 'encrypt_notification',
    'NotificationPayload', 'NotificationEvent', 'MotionEvent', 'RingEvent',
    'RingListener', 'MotionListener', 'NotificationEventDispatcher',
    'verify_device_identity', 'authenticate_payload',
    'NotificationKeyProvider', 'SessionFetcher', 'client_session_fetcher',
    'extract_notification_key', 'stretch_password',
    'DoorbirdNotificationSocket', 'SocketState', 'ErrorHandler',
    'DoorbirdClient', 'Scheme', 'FavoriteType',
    'DOORBIRD_NOTIFY_PORT', 'DOORBIRD_NOTIFY_ALT_PORT', 'UDP_IDENTIFIER',
]
