# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration of a single DoorBird device.

Example configuration file:

    {
      "host": "192.168.1.50",
      "scheme": "http",
      "username": "ghxxxx0001",
      "password_cfg": {
        "cfg_class": "KeyringPasswordConfig",
        "data": { "service": "doorbird", "key": "ghxxxx0001" }
      },
      "notify_port": 6524,
      "suppress_bursts": true
    }

"password": "${env:DOORBIRD_PASSWORD}" may be used instead of password_cfg.
"""

from typing import Optional, Dict, Any

import os

from ..exceptions import ConfigError
from ..constants import DOORBIRD_NOTIFY_PORT, DEFAULT_HTTP_TIMEOUT
from .base import Config
from .password import PasswordConfig, LiteralPasswordConfig, load_password_config

DEFAULT_CONFIG_FILE = os.path.join('~', '.config', 'doorbird', 'config.json')

class DeviceConfig(Config):
  host: Optional[str] = None
  scheme: str = "http"
  username: Optional[str] = None
  notify_port: int = DOORBIRD_NOTIFY_PORT
  suppress_bursts: bool = False
  verify_tls: bool = True
  http_timeout: float = DEFAULT_HTTP_TIMEOUT
  _password_cfg: Optional[PasswordConfig] = None

  def bake(self):
    self.host = self.get_cfg_property_str('host', None)
    self.scheme = self.get_cfg_property_str('scheme', self.scheme)
    if self.scheme not in ('http', 'https'):
      raise ConfigError(f"DeviceConfig: scheme must be 'http' or 'https', got {self.scheme!r}")
    self.username = self.get_cfg_property_str('username', None)
    self.notify_port = self.get_cfg_property_int('notify_port', self.notify_port)
    self.suppress_bursts = self.get_cfg_property_bool('suppress_bursts', self.suppress_bursts)
    self.verify_tls = self.get_cfg_property_bool('verify_tls', self.verify_tls)
    http_timeout = self.get_cfg_property('http_timeout', None)
    if http_timeout is not None:
      try:
        self.http_timeout = float(http_timeout)  # type: ignore[arg-type]
      except (TypeError, ValueError) as e:
        raise ConfigError(f"DeviceConfig: http_timeout must be a number, got {http_timeout!r}") from e
    password_cfg_data = self.get_template_cfg_property('password_cfg', None)
    if password_cfg_data is not None:
      self._password_cfg = load_password_config(self.get_context(), password_cfg_data)
    elif self.get_cfg_property('password', None) is not None:
      self._password_cfg = load_password_config(
          self.get_context(),
          { 'cfg_class': 'LiteralPasswordConfig', 'data': { 'password': self.get_template_cfg_property('password') } }
        )

  @property
  def has_password(self) -> bool:
    return self._password_cfg is not None

  def get_password(self) -> str:
    if self._password_cfg is None:
      raise ConfigError("DeviceConfig: no password or password_cfg configured")
    return self._password_cfg.get_password()

  def override(
        self,
        host: Optional[str]=None,
        scheme: Optional[str]=None,
        username: Optional[str]=None,
        password: Optional[str]=None,
        notify_port: Optional[int]=None,
        suppress_bursts: Optional[bool]=None
      ) -> None:
    """Replaces configured values with any that are not None (e.g., from the command line)."""
    if host is not None:
      self.host = host
    if scheme is not None:
      self.scheme = scheme
    if username is not None:
      self.username = username
    if password is not None:
      self._password_cfg = LiteralPasswordConfig(password)
    if notify_port is not None:
      self.notify_port = notify_port
    if suppress_bursts is not None:
      self.suppress_bursts = suppress_bursts

  def require_username(self) -> str:
    if self.username is None:
      raise ConfigError("DeviceConfig: no username configured")
    return self.username

  def require_host(self) -> str:
    if self.host is None:
      raise ConfigError("DeviceConfig: no host configured")
    return self.host

  def client_kwargs(self) -> Dict[str, Any]:
    """Keyword arguments for DoorbirdClient."""
    return dict(
        host=self.require_host(),
        username=self.require_username(),
        password=self.get_password(),
        scheme=self.scheme,
        timeout=self.http_timeout,
        verify_tls=self.verify_tls,
      )
