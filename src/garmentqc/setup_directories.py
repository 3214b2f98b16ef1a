"""
Directory setup for the kiosk console.

Layout under the base directory:
- db/      SQLite record store
- logs/    garmentqc_{factory}.log
- assets/  evidence images when the local asset store is used
"""

import re
from pathlib import Path


def setup_output_directories(base_output_dir=None):
    """
    Set up the output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path, optional
        Base output directory. Defaults to ./garmentqc_data.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'db', 'logs', 'assets'
    """
    if base_output_dir is None:
        base_output_dir = Path.cwd() / "garmentqc_data"

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {
        "base": base_output_dir,
        "db": base_output_dir / "db",
        "logs": base_output_dir / "logs",
        "assets": base_output_dir / "assets",
    }

    for key, path in directories.items():
        path.mkdir(parents=True, exist_ok=True)

    return directories


def get_db_path(output_dirs, db_filename):
    """Record store database path."""
    return Path(output_dirs["db"]) / db_filename


def get_log_path(output_dirs, factory_name):
    """
    Log file path for one factory.

    Examples
    --------
    >>> get_log_path({"logs": "/data/logs"}, "Lahore Unit 2")
    PosixPath('/data/logs/garmentqc_Lahore_Unit_2.log')
    """
    safe = re.sub(r"[^A-Za-z0-9_-]", "_", str(factory_name))
    return Path(output_dirs["logs"]) / f"garmentqc_{safe}.log"
