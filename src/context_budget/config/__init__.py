"""
Configuration de Context Budget.
"""

from .loader import (
    load_config,
    get_masking_config,
    get_ttl_config,
    get_soft_trim_options,
    get_hard_clear_options,
)
from .settings import (
    MaskingConfig,
    TTLConfig,
    SoftTrimOptions,
    HardClearOptions,
    compile_error_patterns,
)

__all__ = [
    "load_config",
    "get_masking_config",
    "get_ttl_config",
    "get_soft_trim_options",
    "get_hard_clear_options",
    "MaskingConfig",
    "TTLConfig",
    "SoftTrimOptions",
    "HardClearOptions",
    "compile_error_patterns",
]
