# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration context.

A ConfigContext holds the variables available to ${name} templates in configuration
files: every environment variable as ${env:NAME}, plus config_file and config_dir
when loading from a file.
"""

from typing import Optional, Dict, Any, TYPE_CHECKING, Type, TypeVar, TextIO
from ..internal_types import Jsonable, JsonableDict, Self

if TYPE_CHECKING:
  from .base import Config
  from .device import DeviceConfig

import os
import json
import importlib
from collections import UserDict
from copy import deepcopy
from string import Template

from ..exceptions import ConfigError

class _ConfigTemplate(Template):
  # allow namespaced variables such as ${env:HOME}
  idpattern = r'(?a:[_a-z][_a-z0-9]*(?::[_a-z0-9]+)?)'

class ConfigDict(UserDict):
  pass

_Config = TypeVar('_Config', bound='Config')

class ConfigContext(ConfigDict):
  def __init__(self, globals: Optional[Dict[str, Any]]=None, os_environ: Optional[Dict[str, str]]=None):
    super().__init__()
    if not globals is None:
      globals = deepcopy(globals)
      self.update(globals)
    if os_environ is None:
      os_environ = dict(os.environ)
    for k, v in os_environ.items():
      self[f"env:{k}"] = v

  def clone(self) -> Self:
    result = deepcopy(self)
    return result

  def render_template_str(self, template_str: str) -> str:
    t = _ConfigTemplate(template_str)
    try:
      result: str = t.substitute(self)
    except KeyError as e:
      raise ConfigError(f"ConfigContext: undefined template variable {e}") from e
    except ValueError as e:
      raise ConfigError(f"ConfigContext: invalid template: {e}") from e
    return result

  def render_template_json_data(self, template_json_data: Jsonable) -> Jsonable:
    if isinstance(template_json_data, str):
      return self.render_template_str(template_json_data)
    if isinstance(template_json_data, list):
      return [ self.render_template_json_data(x) for x in template_json_data ]
    if isinstance(template_json_data, dict):
      return { k: self.render_template_json_data(v) for k, v in template_json_data.items() }
    return template_json_data

  def instantiate_config(self, class_name: str, required_type: Type[_Config]) -> _Config:
    """Creates an empty Config instance from a class name. Unqualified names are looked
       up in this package's config module."""
    class_parts = class_name.rsplit('.', 1)
    if len(class_parts) > 1:
      module_name, class_tail = class_parts
    else:
      from .. import config as config_module
      module_name = config_module.__name__
      class_tail = class_name
    try:
      module = importlib.import_module(module_name)
      klass = getattr(module, class_tail)
    except (ImportError, AttributeError) as e:
      raise ConfigError(f"Config: unknown cfg_class {class_name!r}") from e
    if not isinstance(klass, type) or not issubclass(klass, required_type):
      raise ConfigError(f"Config: {class_name} is not a subclass of required type {required_type.__name__}")
    return klass()

  def push_config_file(self, config_file: Optional[str]) -> 'ConfigContext':
    ctx = self.clone()
    ctx.set_config_file(config_file)
    return ctx

  @property
  def config_file(self) -> Optional[str]:
    return self.get('config_file', None)

  @property
  def config_dir(self) -> Optional[str]:
    return self.get('config_dir', None)

  def set_config_file(self, config_file: Optional[str]=None):
    if config_file is None:
      for propname in ['config_file', 'config_dir']:
        if propname in self:
          del self[propname]
    else:
      config_file = os.path.abspath(os.path.expanduser(config_file))
      self['config_file'] = config_file
      self['config_dir'] = os.path.dirname(config_file)

  def loads(self, s: str) -> 'DeviceConfig':
    from .device import DeviceConfig
    try:
      data: Jsonable = json.loads(s)
    except json.JSONDecodeError as e:
      raise ConfigError(f"ConfigContext: invalid JSON: {e}") from e
    if not isinstance(data, dict):
      raise ConfigError(f"ConfigContext: expected json dict, got {type(data).__name__}")
    cfg = DeviceConfig()
    cfg.load_json_data(self, data)
    return cfg

  def load_stream(self, stream: TextIO) -> 'DeviceConfig':
    return self.loads(stream.read())

  def load_file(self, config_file: str) -> 'DeviceConfig':
    ctx = self.push_config_file(config_file)
    try:
      with open(os.path.expanduser(config_file)) as f:
        cfg = ctx.load_stream(f)
    except OSError as e:
      raise ConfigError(f"Unable to read config file {config_file}: {e}") from e
    return cfg
