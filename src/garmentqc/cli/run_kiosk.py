"""Kiosk console command-line runner.

Argument parsing and subcommand dispatch live here; scripts/run_kiosk.py
is a thin wrapper.

Usage::

    garmentqc scripts/user_config.py import-standards specs/ST-204.csv --garment-type trousers
    garmentqc scripts/user_config.py reports --limit 20
    garmentqc scripts/user_config.py calibrate --t1 40 --t2 160 --apply
    garmentqc scripts/user_config.py measure --garment-type trousers --save
    garmentqc scripts/user_config.py reference M --garment-type trousers
    garmentqc scripts/user_config.py reference 32 --manual waist=82.5 inseam=76
    garmentqc scripts/user_config.py rotate --angle 90
"""

import sys
import json
import argparse
import logging
import importlib.util
from pathlib import Path
from typing import Optional, Dict, Any

from garmentqc.contracts.failure import GarmentQCError, ValidationError
from garmentqc.pipeline.orchestrator import KioskOrchestrator
from garmentqc.schemas import resolve_config, ParamConfig, UserConfig, CLIConfig
from garmentqc.setup_directories import setup_output_directories
from garmentqc.standards.ingestion import ingest_standards

__all__ = ['main', 'load_user_config_dict', 'build_config']

logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def build_config(user_config_path: str, cli_args: Optional[Dict[str, Any]] = None,
                 verbose: bool = False):
    """Resolve the runtime configuration (Param < User < CLI).

    Parameters
    ----------
    user_config_path : str
        Path to user config file (Python file with CONFIG dict).
    cli_args : dict, optional
        CLI overrides. Keys: base_dir, factory_id, vision_url, log_level.
        None values are ignored.
    verbose : bool
        Force DEBUG logging.

    Returns
    -------
    InternalConfig
    """
    param_cfg = ParamConfig()

    user_cfg = UserConfig.model_validate(load_user_config_dict(user_config_path))

    cli_args = dict(cli_args or {})
    if verbose and not cli_args.get("log_level"):
        cli_args["log_level"] = "DEBUG"
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}
    cli_cfg = CLIConfig.model_validate(cli_dict) if cli_dict else CLIConfig()

    return resolve_config(param_cfg, user_cfg, cli_cfg)


# =============================================================================
# Subcommands
# =============================================================================

def cmd_import_standards(kiosk: KioskOrchestrator, args) -> int:
    cfg = kiosk.config.standards
    standard = ingest_standards(
        kiosk.record_store,
        args.csv,
        garment_type=args.garment_type,
        style_code=args.style_code,
        unit=args.unit or cfg.unit,
        offset=cfg.size_column_offset,
    )
    rows = len(next(iter(standard.sizes.values())))
    print(f"Standard '{standard.standard_id}' saved: sizes {', '.join(standard.size_labels)}; {rows} POM row(s)")
    return 0


def cmd_reports(kiosk: KioskOrchestrator, args) -> int:
    limit = args.limit or kiosk.config.reports.list_limit
    stats = kiosk.record_store.get_statistics(limit=limit)
    df = kiosk.record_store.reports_frame(limit=limit)

    print(f"Total: {stats['total']}  Pass: {stats['passed']}  Fail: {stats['failed']}  "
          f"Unknown: {stats['unknown']}  Pass rate: {stats['pass_rate']}%")
    if df.empty:
        print("No reports yet")
    else:
        columns = ["measured_at", "garment_type", "detected_size", "qc_status", "id"]
        print(df[columns].to_string(index=False))
    return 0


def cmd_calibrate(kiosk: KioskOrchestrator, args) -> int:
    session = kiosk.session
    with session.calibration_mode():
        outcome = session.detect_calibration(args.t1, args.t2)

    if not outcome.success:
        print(f"Calibration failed: {outcome.reason}")
        return 1

    print(f"Detected {outcome.pixels_per_cm:.3f} px/cm (current: {session.pixels_per_cm})")
    if args.apply:
        session.apply_calibration(outcome)
        print(f"Applied {session.pixels_per_cm:.3f} px/cm")
    return 0


def cmd_measure(kiosk: KioskOrchestrator, args) -> int:
    session = kiosk.session
    with session.measure_mode(args.garment_type):
        outcome = session.measure(args.garment_type)

    result = outcome.result
    print(f"Size: {result.detected_size}  Confidence: {result.confidence:.2f}  QC: {result.qc_status.value}")
    for m in result.measurements:
        print(f"  {m.name:24s} {m.value:8.2f} {m.unit}")
    if outcome.qc_failed:
        for reason in result.qc_failures:
            print(f"  FAIL: {reason}")
    for defect in outcome.defects:
        print(f"  WARNING: {defect}")

    if args.save:
        report = session.save_report(outcome, garment_ref=args.garment_ref)
        print(f"Report saved: {report.record_id} ({len(report.linked_images)} image(s) linked)")
        for warning in report.warnings:
            print(f"  WARNING: {warning}")
    return 0


def _parse_manual_values(pairs) -> Dict[str, str]:
    """``["waist=82.5", "hip=101"]`` -> ``{"waist": "82.5", "hip": "101"}``."""
    values = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValidationError(f"Expected NAME=VALUE, got {pair!r}")
        values[name.strip()] = value.strip()
    return values


def cmd_reference(kiosk: KioskOrchestrator, args) -> int:
    session = kiosk.session
    if args.manual:
        session.save_reference(
            args.size,
            manual_values=_parse_manual_values(args.manual),
            garment_type=args.garment_type,
        )
        source = "manual entry"
    else:
        with session.measure_mode(args.garment_type):
            outcome = session.measure(args.garment_type)
        session.save_reference(args.size, outcome=outcome)
        source = f"camera, {len(outcome.result.measurements)} measurement(s)"

    print(f"Reference saved: size {args.size.strip()} ({source})")
    return 0


def cmd_rotate(kiosk: KioskOrchestrator, args) -> int:
    rotation = kiosk.session.rotate_camera(args.angle)
    print(f"Camera rotation: {rotation}")
    return 0


COMMANDS = {
    "import-standards": (cmd_import_standards, False),
    "reports": (cmd_reports, False),
    "calibrate": (cmd_calibrate, False),
    "measure": (cmd_measure, True),
    "reference": (cmd_reference, True),
    "rotate": (cmd_rotate, False),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="garmentqc", description="Garment QC kiosk console")
    parser.add_argument("config", help="Path to user config file")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--factory-id", help="Override factory id")
    parser.add_argument("--vision-url", help="Override vision backend URL")
    parser.add_argument("--reset-rotation", action="store_true",
                        help="Reset camera rotation to 0 first (kiosk start-up)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import-standards", help="Ingest a size-standard CSV")
    p.add_argument("csv", help="Standards CSV file")
    p.add_argument("--garment-type", required=True)
    p.add_argument("--style-code", help="Defaults to the CSV file name")
    p.add_argument("--unit", help="Defaults to standards.unit")

    p = sub.add_parser("reports", help="Show recent QC reports")
    p.add_argument("--limit", type=int)

    p = sub.add_parser("calibrate", help="Detect (and optionally apply) calibration")
    p.add_argument("--t1", type=int)
    p.add_argument("--t2", type=int)
    p.add_argument("--apply", action="store_true", help="Apply a successful detection")

    p = sub.add_parser("measure", help="Capture and measure one garment")
    p.add_argument("--garment-type")
    p.add_argument("--save", action="store_true", help="Save the QC report")
    p.add_argument("--garment-ref", help="External garment reference")

    p = sub.add_parser("reference", help="Register a reference garment for a size")
    p.add_argument("size", help="Size label, e.g. M or 32")
    p.add_argument("--garment-type")
    p.add_argument("--manual", nargs="+", metavar="NAME=VALUE",
                   help="Enter measurements (cm) instead of capturing")

    p = sub.add_parser("rotate", help="Rotate the camera")
    p.add_argument("--angle", type=int, choices=[0, 90, 180, 270])

    return parser


def main(argv=None, http_session=None) -> int:
    """Console entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    config = build_config(
        args.config,
        cli_args={
            "base_dir": args.base_dir,
            "factory_id": args.factory_id,
            "vision_url": args.vision_url,
        },
        verbose=args.verbose,
    )
    output_dirs = setup_output_directories(config.base_dir)

    if args.verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2))
        print('=' * 60)

    handler, needs_calibration = COMMANDS[args.command]
    kiosk = KioskOrchestrator(config, output_dirs, http_session=http_session)
    try:
        kiosk.open(load_calibration=needs_calibration, reset_rotation=args.reset_rotation)
        return handler(kiosk, args)
    except GarmentQCError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        kiosk.close()


if __name__ == "__main__":
    sys.exit(main())
