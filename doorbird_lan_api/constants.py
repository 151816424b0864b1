# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

DOORBIRD_NOTIFY_PORT = 6524
"""The primary UDP port to which DoorBird devices send event notifications."""

DOORBIRD_NOTIFY_ALT_PORT = 35344
"""The secondary UDP port to which DoorBird devices send the same notifications."""

UDP_IDENTIFIER = b'\xde\xad\xbe'
"""The 3-byte marker that starts every notification datagram."""

NOTIFICATION_VERSION_ARGON = 0x01
"""Packet version whose key is stretched from the password with Argon2i."""

NOTIFICATION_VERSION_SESSION_KEY = 0x02
"""Packet version whose key is the session's NOTIFICATION_ENCRYPTION_KEY."""

HEADER_SIZE = 4
SALT_SIZE = 16
NONCE_SIZE = 8
PAYLOAD_SIZE = 18
TAG_SIZE = 16
CIPHERTEXT_SIZE = PAYLOAD_SIZE + TAG_SIZE

V1_PACKET_SIZE = HEADER_SIZE + 4 + 4 + SALT_SIZE + NONCE_SIZE + CIPHERTEXT_SIZE  # 70 bytes
V2_PACKET_SIZE = HEADER_SIZE + NONCE_SIZE + CIPHERTEXT_SIZE  # 46 bytes

KEY_SIZE = 32
"""Size of the ChaCha20 key, both stretched (v1) and session supplied (v2)."""

PASSWORD_PREFIX_LENGTH = 5
"""Number of password characters fed to Argon2i."""

INTERCOM_ID_LENGTH = 6
EVENT_TAG_LENGTH = 8
"""Number of username characters that identify the device in a payload."""

MOTION_EVENT_TAG = "motion"

BURST_SUPPRESSION_WINDOW = 1.0
"""Seconds after an accepted datagram during which further datagrams are dropped."""

DEFAULT_HTTP_TIMEOUT = 10.0
"""Default timeout (in seconds) for Control API requests."""
