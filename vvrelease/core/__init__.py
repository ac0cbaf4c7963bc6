"""Core domain types: results, exit codes, configuration, source tree."""

from .config import Config, ConfigError, load_config, load_config_or_default
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok
from .source import SourceError, SourceTree, detect_source_tree

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    "load_config_or_default",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
    # source
    "SourceError",
    "SourceTree",
    "detect_source_tree",
]
