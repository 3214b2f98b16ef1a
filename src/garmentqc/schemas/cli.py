"""CLIConfig: Command-line operational overrides.

Minimal configuration for operational parameters that commonly change
between runs: output paths, factory, vision backend URL, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from garmentqc.schemas.base import GarmentQCBaseModel


class CLIConfig(GarmentQCBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            base_dir="/scratch/garmentqc",
            vision_url="http://127.0.0.1:8000",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    base_dir: Optional[str] = None
    factory_id: Optional[str] = None
    vision_url: Optional[str] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        if self.factory_id is not None:
            overrides["factory"] = {"factory_id": self.factory_id}

        if self.vision_url is not None:
            overrides["vision"] = {"base_url": self.vision_url}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
