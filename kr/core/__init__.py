"""Core domain types and logic."""

from .config import Config, ConfigError, load_config
from .errors import ErrorCode
from .result import Err, Ok, Result
from .secrets import Secret
from .targets import PlatformTarget, ordered_targets

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    # secrets
    "Secret",
    # targets
    "PlatformTarget",
    "ordered_targets",
]
