"""Command-line interface for the kiosk console.

This package contains the execution logic, making scripts/ optional and deletable.
"""

from garmentqc.cli.run_kiosk import main, load_user_config_dict, build_config

__all__ = ['main', 'load_user_config_dict', 'build_config']
