"""Pydantic schemas for garmentqc.

Configuration models follow a layered design: expert defaults
(ParamConfig) are overridden by a forgiving user file (UserConfig) and by
command-line flags (CLIConfig); resolve_config() merges them into the
frozen InternalConfig that runtime code receives.

Domain models (capture results, reports, size standards) live in
garmentqc.schemas.domain.
"""

from garmentqc.schemas.resolve import resolve_config
from garmentqc.schemas.internal import InternalConfig
from garmentqc.schemas.param import ParamConfig
from garmentqc.schemas.user import UserConfig
from garmentqc.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
