#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from __future__ import annotations

from typing import Optional

class DoorbirdError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class PacketError(DoorbirdError):
  """A received datagram could not be used as a notification packet."""
  pass

class NotApplicableError(PacketError):
  """The datagram is not a DoorBird notification: it is too short for a header,
     the identifier does not match, or the version is unknown."""
  pass

class MalformedPacketError(PacketError):
  """The datagram has a valid header but is too short for its declared version."""
  pass

class KeyProviderError(DoorbirdError):
  """A notification decryption key could not be produced."""
  pass

class KeyDerivationError(KeyProviderError):
  """Argon2i stretching of the device password failed (v1 packets)."""
  pass

class KeyFetchError(KeyProviderError):
  """The notification encryption key could not be obtained from the Control API (v2 packets)."""
  pass

class DecryptError(DoorbirdError):
  """The cipher operation itself failed (bad key or nonce size)."""
  pass

class IdentityMismatchError(DoorbirdError):
  """The decrypted device id does not match the configured username."""
  pass

class NotificationBindError(DoorbirdError):
  """The notification socket could not bind its UDP port."""
  port: int

  def __init__(self, port: int, cause: Optional[OSError]=None):
    msg = f"Unable to bind notification socket to UDP port {port}"
    if cause is not None:
      msg += f": {cause}"
    super().__init__(msg)
    self.port = port

class ControlApiError(DoorbirdError):
  """An HTTP request to the device Control API failed or returned an unusable response."""
  status_code: Optional[int] = None

  def __init__(self, msg: str, status_code: Optional[int]=None):
    super().__init__(msg)
    self.status_code = status_code

class ConfigError(DoorbirdError):
  """The device configuration is missing a value or is invalid."""
  pass
