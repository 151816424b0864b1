from .base import Config
from .context import ConfigContext
from .password import PasswordConfig, LiteralPasswordConfig, KeyringPasswordConfig
from .device import DeviceConfig, DEFAULT_CONFIG_FILE
