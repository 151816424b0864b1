#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Builds and sends notification datagrams the way a DoorBird device does. Useful for
exercising a DoorbirdNotificationSocket without a device.
"""

from __future__ import annotations

import asyncio
import datetime

import nacl.utils

from .internal_types import *
from .pkg_logging import logger
from .constants import SALT_SIZE, NONCE_SIZE
from .notification_packet import NotificationPacketV1, NotificationPacketV2
from .notification_cipher import encrypt_notification
from .notification_events import NotificationPayload
from .key_provider import stretch_password

DEFAULT_SIMULATED_OPSLIMIT = 4
DEFAULT_SIMULATED_MEMLIMIT = 8192

def make_payload(username: str, event_tag: str, timestamp: Optional[datetime.datetime]=None) -> bytes:
    """Builds an 18-byte plaintext payload for the device owning `username`."""
    if timestamp is None:
        timestamp = datetime.datetime.now(tz=datetime.timezone.utc)
    return NotificationPayload(username[:6], event_tag, int(timestamp.timestamp())).encode()

def make_v1_notification(
        password: str,
        payload: bytes,
        opslimit: int=DEFAULT_SIMULATED_OPSLIMIT,
        memlimit: int=DEFAULT_SIMULATED_MEMLIMIT,
        salt: Optional[bytes]=None,
        nonce: Optional[bytes]=None
      ) -> bytes:
    """Encrypts a payload with a key stretched from the password and returns the version 1 datagram."""
    if salt is None:
        salt = nacl.utils.random(SALT_SIZE)
    if nonce is None:
        nonce = nacl.utils.random(NONCE_SIZE)
    key = stretch_password(password, salt, opslimit, memlimit)
    ciphertext = encrypt_notification(key, nonce, payload)
    return NotificationPacketV1(opslimit, memlimit, salt, nonce, ciphertext).build()

def make_v2_notification(key: bytes, payload: bytes, nonce: Optional[bytes]=None) -> bytes:
    """Encrypts a payload with a session notification key and returns the version 2 datagram."""
    if nonce is None:
        nonce = nacl.utils.random(NONCE_SIZE)
    ciphertext = encrypt_notification(key, nonce, payload)
    return NotificationPacketV2(nonce, ciphertext).build()

async def send_datagram(data: bytes, addr: HostAndPort) -> None:
    """Sends a single UDP datagram to addr."""
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(asyncio.DatagramProtocol, remote_addr=addr)
    try:
        logger.debug(f"Sending {len(data)}-byte notification datagram to {addr}")
        transport.sendto(data)
    finally:
        transport.close()
