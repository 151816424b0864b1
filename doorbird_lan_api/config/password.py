# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration support for retrieving the device password."""

from typing import Optional

import keyring
from keyring.errors import KeyringError

from ..exceptions import ConfigError
from .base import Config

class PasswordConfig(Config):
  _default_password_cfg: Optional['PasswordConfig'] = None

  def bake(self):
    default_cfg_data = self.get_template_cfg_property('default_password_cfg', None)
    if not default_cfg_data is None:
      self._default_password_cfg = load_password_config(self.get_context(), default_cfg_data)

  def get_password(self) -> str:
    raise NotImplementedError(f"{type(self).__name__} does not implement get_password")

class LiteralPasswordConfig(PasswordConfig):
  """A password given directly in the configuration (usually as ${env:NAME})."""
  _password: Optional[str] = None

  def __init__(self, password: Optional[str]=None):
    super().__init__()
    self._password = password

  def bake(self):
    super().bake()
    self._password = self.get_cfg_property_str('password')

  def get_password(self) -> str:
    assert not self._password is None
    return self._password

class KeyringPasswordConfig(PasswordConfig):
  """A password stored in the system keyring under a service name and key."""
  _keyring_service: Optional[str] = None
  _keyring_key: Optional[str] = None

  def bake(self):
    super().bake()
    self._keyring_service = self.get_cfg_property_str('service')
    self._keyring_key = self.get_cfg_property_str('key')

  def get_password(self) -> str:
    assert not self._keyring_service is None
    assert not self._keyring_key is None
    try:
      result = keyring.get_password(self._keyring_service, self._keyring_key)
    except KeyringError as e:
      raise ConfigError(f"KeyringPasswordConfig: keyring lookup failed: {e}") from e
    if result is None:
      if self._default_password_cfg is None:
        raise ConfigError(f"KeyringPasswordConfig: service '{self._keyring_service}', key name '{self._keyring_key}' does not exist")
      result = self._default_password_cfg.get_password()
    return result

  def set_password(self, s: str):
    assert not self._keyring_service is None
    assert not self._keyring_key is None
    keyring.set_password(self._keyring_service, self._keyring_key, s)

def load_password_config(ctx, data) -> PasswordConfig:
  """Loads a {"cfg_class": ..., "data": {...}} password configuration."""
  if not isinstance(data, dict):
    raise ConfigError(f"Password configuration must be a dict, got {type(data).__name__}")
  cfg_class_name = data.get('cfg_class')
  if not isinstance(cfg_class_name, str):
    raise ConfigError("Password configuration requires a string cfg_class")
  cfg_data = data.get('data', {})
  cfg = ctx.instantiate_config(cfg_class_name, PasswordConfig)
  cfg.load_json_data(ctx, cfg_data)
  return cfg
