#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Decryption of notification payloads.

DoorBird encrypts notifications with the original (pre-IETF) ChaCha20-Poly1305
construction: 8-byte nonce, 64-bit block counter, keystream block 0 reserved for
the one-time Poly1305 key and the message XORed with the keystream from block 1
onward. The device firmware's reference client decrypts in streaming mode and
never checks the trailing Poly1305 tag, so neither do we; the only authenticity
check is the device id match performed by the event dispatcher.
"""

from __future__ import annotations

import struct

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
import nacl.bindings
from nacl.exceptions import CryptoError

from .exceptions import DecryptError
from .constants import KEY_SIZE, NONCE_SIZE, PAYLOAD_SIZE, TAG_SIZE

def _keystream_cipher(key: bytes, nonce: bytes) -> Cipher:
    if len(key) != KEY_SIZE:
        raise DecryptError(f"Notification key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != NONCE_SIZE:
        raise DecryptError(f"Notification nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    # cryptography takes the full 16-byte ChaCha20 counter block: a 64-bit little-endian
    # block counter followed by the 64-bit nonce. Block 0 belongs to Poly1305.
    counter_and_nonce = struct.pack('<Q', 1) + nonce
    return Cipher(algorithms.ChaCha20(key, counter_and_nonce), mode=None)

def decrypt_notification(key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    """Decrypts the payload portion of a notification ciphertext.

    Only the first PAYLOAD_SIZE bytes are decrypted; the Poly1305 tag that follows
    them is ignored. A wrong key does not raise: it produces garbage that fails the
    device id check downstream.

    Raises:
        DecryptError: The key or nonce has the wrong size, or the ciphertext is too short.
    """
    if len(ciphertext) < PAYLOAD_SIZE:
        raise DecryptError(f"Notification ciphertext must be at least {PAYLOAD_SIZE} bytes, got {len(ciphertext)}")
    decryptor = _keystream_cipher(key, nonce).decryptor()
    return decryptor.update(ciphertext[:PAYLOAD_SIZE]) + decryptor.finalize()

def encrypt_notification(key: bytes, nonce: bytes, payload: bytes) -> bytes:
    """Encrypts a payload exactly as a device does, returning ciphertext followed by
    the Poly1305 tag. Used to simulate a device and in tests."""
    if len(key) != KEY_SIZE:
        raise DecryptError(f"Notification key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != NONCE_SIZE:
        raise DecryptError(f"Notification nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    try:
        result = nacl.bindings.crypto_aead_chacha20poly1305_encrypt(payload, None, nonce, key)
    except CryptoError as e:
        raise DecryptError(f"Unable to encrypt notification payload: {e}") from e
    assert len(result) == len(payload) + TAG_SIZE
    return result
