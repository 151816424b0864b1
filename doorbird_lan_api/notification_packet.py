#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Parsing of raw DoorBird UDP notification datagrams.

Every notification starts with a 4-byte header: the 3-byte identifier DE AD BE
followed by a version byte. The rest of the datagram depends on the version:

    Version 1 (70 bytes):
        0   identifier (3)   3  version (1)
        4   opslimit (4, big-endian unsigned)
        8   memlimit (4, big-endian unsigned)
        12  salt (16)
        28  nonce (8)
        36  ciphertext (34)

    Version 2 (46 bytes):
        0   identifier (3)   3  version (1)
        4   nonce (8)
        12  ciphertext (34)

NotificationPacket is the union of the two layouts; the `version` attribute is the tag.
"""

from __future__ import annotations

import struct

from .internal_types import *
from .exceptions import NotApplicableError, MalformedPacketError
from .constants import (
    UDP_IDENTIFIER,
    NOTIFICATION_VERSION_ARGON,
    NOTIFICATION_VERSION_SESSION_KEY,
    HEADER_SIZE,
    SALT_SIZE,
    NONCE_SIZE,
    CIPHERTEXT_SIZE,
    V1_PACKET_SIZE,
    V2_PACKET_SIZE,
  )

_V1_STRUCT = struct.Struct(f'!3sBII{SALT_SIZE}s{NONCE_SIZE}s{CIPHERTEXT_SIZE}s')
_V2_STRUCT = struct.Struct(f'!3sB{NONCE_SIZE}s{CIPHERTEXT_SIZE}s')

assert _V1_STRUCT.size == V1_PACKET_SIZE
assert _V2_STRUCT.size == V2_PACKET_SIZE

class NotificationPacketV1:
    """A version 1 notification, whose key is stretched from the device password
       using the Argon2i cost parameters carried in the packet itself."""

    version: int = NOTIFICATION_VERSION_ARGON

    identifier: bytes
    opslimit: int
    """Argon2i CPU cost (iterations)."""

    memlimit: int
    """Argon2i memory cost, in bytes."""

    salt: bytes
    nonce: bytes
    ciphertext: bytes
    """Encrypted 18-byte payload followed by the 16-byte Poly1305 tag."""

    def __init__(
            self,
            opslimit: int,
            memlimit: int,
            salt: bytes,
            nonce: bytes,
            ciphertext: bytes,
            identifier: bytes=UDP_IDENTIFIER
          ):
        self.identifier = identifier
        self.opslimit = opslimit
        self.memlimit = memlimit
        self.salt = salt
        self.nonce = nonce
        self.ciphertext = ciphertext

    def build(self) -> bytes:
        """Encodes the packet into its wire representation."""
        return _V1_STRUCT.pack(
            self.identifier,
            self.version,
            self.opslimit,
            self.memlimit,
            self.salt,
            self.nonce,
            self.ciphertext,
          )

    def __str__(self) -> str:
        return (f"NotificationPacketV1(opslimit={self.opslimit}, memlimit={self.memlimit}, "
                f"salt={self.salt.hex()}, nonce={self.nonce.hex()})")

    def __repr__(self) -> str:
        return str(self)

class NotificationPacketV2:
    """A version 2 notification, encrypted with the session's notification
       encryption key obtained from the Control API."""

    version: int = NOTIFICATION_VERSION_SESSION_KEY

    identifier: bytes
    nonce: bytes
    ciphertext: bytes

    def __init__(self, nonce: bytes, ciphertext: bytes, identifier: bytes=UDP_IDENTIFIER):
        self.identifier = identifier
        self.nonce = nonce
        self.ciphertext = ciphertext

    def build(self) -> bytes:
        """Encodes the packet into its wire representation."""
        return _V2_STRUCT.pack(self.identifier, self.version, self.nonce, self.ciphertext)

    def __str__(self) -> str:
        return f"NotificationPacketV2(nonce={self.nonce.hex()})"

    def __repr__(self) -> str:
        return str(self)

NotificationPacket = Union[NotificationPacketV1, NotificationPacketV2]

def parse_notification_packet(data: bytes, identifier: bytes=UDP_IDENTIFIER) -> NotificationPacket:
    """Slices a raw datagram into a typed notification packet.

    Raises:
        NotApplicableError:   The datagram is too short for a header, does not start with
                              the identifier, or has an unknown version. Such datagrams are
                              simply not for us.
        MalformedPacketError: The header is valid but the datagram is too short for the
                              declared version.

    Bytes beyond the end of the version's layout are ignored.
    """
    if len(data) < HEADER_SIZE:
        raise NotApplicableError(f"Datagram too short for a notification header: {len(data)} bytes")
    if data[:len(identifier)] != identifier:
        raise NotApplicableError(f"Datagram identifier mismatch: {data[:len(identifier)].hex()}")
    version = data[3]
    if version == NOTIFICATION_VERSION_ARGON:
        if len(data) < V1_PACKET_SIZE:
            raise MalformedPacketError(f"Version 1 notification requires {V1_PACKET_SIZE} bytes, got {len(data)}")
        _, _, opslimit, memlimit, salt, nonce, ciphertext = _V1_STRUCT.unpack_from(data)
        return NotificationPacketV1(opslimit, memlimit, salt, nonce, ciphertext, identifier=identifier)
    if version == NOTIFICATION_VERSION_SESSION_KEY:
        if len(data) < V2_PACKET_SIZE:
            raise MalformedPacketError(f"Version 2 notification requires {V2_PACKET_SIZE} bytes, got {len(data)}")
        _, _, nonce, ciphertext = _V2_STRUCT.unpack_from(data)
        return NotificationPacketV2(nonce, ciphertext, identifier=identifier)
    raise NotApplicableError(f"Unsupported notification version: {version:#04x}")
