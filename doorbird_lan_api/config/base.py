# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration support.

"""

from typing import Optional, Any, TypeVar, Union, overload
from ..internal_types import Jsonable, JsonableDict, JsonableTypes

from ..exceptions import ConfigError
from .context import ConfigContext

_T = TypeVar('_T')

class Config:
  _template_json_data: Optional[JsonableDict] = None
  _json_data: Optional[JsonableDict] = None
  _context: Optional[ConfigContext] = None

  def __init__(self):
    pass

  def get_context(self) -> ConfigContext:
    result = self._context
    assert not result is None
    return result

  def bake(self):
    """Called after the configuration data has been rendered. Subclasses extract
       their properties here."""
    pass

  def render(self):
    rendered = self.get_context().render_template_json_data(self._template_json_data)
    assert isinstance(rendered, dict)
    self._json_data = rendered

  def render_and_bake(self, context: ConfigContext):
    self._context = context.clone()
    self.render()
    self.bake()

  def load_json_data(self, ctx: ConfigContext, json_data: JsonableDict):
    if not isinstance(json_data, dict):
      raise ConfigError(f"Config: expected json dict, got {type(json_data).__name__}")
    self._template_json_data = json_data
    self.render_and_bake(ctx)

  _no_default = object()

  @overload
  def get_template_cfg_property(self, key: str, default: _T) -> Union[Jsonable, _T]: pass

  @overload
  def get_template_cfg_property(self, key: str) -> Jsonable: pass

  def get_template_cfg_property(self, key: str, default = _no_default):
    """Returns an unrendered property; used for nested configurations, which render themselves."""
    if not isinstance(self._template_json_data, dict):
      raise ConfigError(f"Config: Expected raw config data '{key}' to be dict, got {type(self._template_json_data)}")
    result = self._template_json_data.get(key, default)
    if result is self._no_default:
      raise ConfigError(f"Config: Raw property {key} does not exist and has no default")
    return result

  @overload
  def get_cfg_property(self, key: str, default: _T) -> Union[Jsonable, _T]: pass

  @overload
  def get_cfg_property(self, key: str) -> Jsonable: pass

  def get_cfg_property(self, key: str, default = _no_default):
    if not isinstance(self._json_data, dict):
      raise ConfigError(f"Config: Expected config data {key} to be dict, got {type(self._json_data)}")
    result = self._json_data.get(key, default)
    if result is self._no_default:
      raise ConfigError(f"Config: Property {key} does not exist and has no default")
    if not result is None and not isinstance(result, JsonableTypes):
      raise ConfigError(f"Config: Expected property {key} to be JSON-able, got {type(result)}")
    return result

  @overload
  def get_cfg_property_str(self, key: str, default: _T) -> Union[str, _T]: pass

  @overload
  def get_cfg_property_str(self, key: str) -> str: pass

  def get_cfg_property_str(self, key: str, default: Any=_no_default):
    result = self.get_cfg_property(key, default)
    if result is default and default is not self._no_default:
      return result
    if not isinstance(result, str):
      raise ConfigError(f"Config: Expected property {key} to be str, got {type(result)}")
    return result

  @overload
  def get_cfg_property_int(self, key: str, default: _T) -> Union[int, _T]: pass

  @overload
  def get_cfg_property_int(self, key: str) -> int: pass

  def get_cfg_property_int(self, key: str, default: Any=_no_default):
    result = self.get_cfg_property(key, default)
    if result is default and default is not self._no_default:
      return result
    if not isinstance(result, int) or isinstance(result, bool):
      if isinstance(result, str):
        try:
          result = int(result)
        except ValueError:
          pass
    if not isinstance(result, int) or isinstance(result, bool):
      raise ConfigError(f"Config: Expected property {key} to be int, got {type(result)}")
    return result

  @overload
  def get_cfg_property_bool(self, key: str, default: _T) -> Union[bool, _T]: pass

  @overload
  def get_cfg_property_bool(self, key: str) -> bool: pass

  def get_cfg_property_bool(self, key: str, default: Any=_no_default):
    result = self.get_cfg_property(key, default)
    if result is default and default is not self._no_default:
      return result
    if isinstance(result, str):
      # rendered templates are always strings
      if result.lower() in ('1', 'true', 'yes', 'on'):
        result = True
      elif result.lower() in ('0', 'false', 'no', 'off', ''):
        result = False
    if not isinstance(result, bool):
      raise ConfigError(f"Config: Expected property {key} to be bool, got {type(result)}")
    return result
