"""Command line interface for mockupdiff."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

from .compare import InspectionResult, inspect_images
from .describe import CaptionDescriptionProvider
from .presets import DIFF_MODES, InspectionParams, OverlayStyle, get_preset, parse_color
from .raster import data_uri_payload
from .report import severity_counts, write_json_report
from .utils.file_io import read_json, write_bytes

logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mockupdiff",
        description="Compare a design mockup with a rendered page and list visual discrepancies.",
    )
    parser.add_argument("--design", help="Path to the design mockup image")
    parser.add_argument("--page", help="Path to the rendered page screenshot")
    parser.add_argument("--json", help="Inspection report path (JSON)")
    parser.add_argument("--overlay", help="Write the numbered overlay image (PNG)")
    parser.add_argument("--screenshots", help="Directory for per-issue screenshots (PNG)")
    parser.add_argument("--preset", default="balanced", help="Preset name (strict|balanced|loose)")
    parser.add_argument("--params", help="JSON file with parameter overrides")
    parser.add_argument("--diff-threshold", type=float, help="Color distance threshold (0-441)")
    parser.add_argument("--diff-mode", choices=DIFF_MODES, help="Difference signal(s) to use")
    parser.add_argument("--morph-kernel", type=int, help="Morphological closing kernel size (px)")
    parser.add_argument("--margin", type=int, help="Margin added around each region (px)")
    parser.add_argument("--min-area", type=int, help="Minimum differing pixels per region")
    parser.add_argument("--merge-distance", type=float, help="Center distance used when merging (px)")
    parser.add_argument("--stroke-color", help="Box and marker color (#RRGGBB or r,g,b)")
    parser.add_argument("--marker-color", help="Marker number color (#RRGGBB or r,g,b)")
    parser.add_argument(
        "--caption-url",
        default=os.getenv("MOCKUPDIFF_CAPTION_URL"),
        help="Optional image-captioning endpoint used to enrich descriptions",
    )
    parser.add_argument("--timeout", type=float, help="Caption service timeout in seconds")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=os.getenv("MOCKUPDIFF_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__

        print(__version__)
        return 0

    if not args.design or not args.page:
        parser.error("--design and --page are required")
        return 2

    if args.log_level not in LOG_LEVELS:
        parser.error(f"Invalid log level '{args.log_level}' (choose from {', '.join(LOG_LEVELS)})")
        return 2
    logging.basicConfig(level=args.log_level)

    try:
        preset = get_preset(args.preset)
    except KeyError as exc:
        parser.error(str(exc))
        return 2

    try:
        params = _override_params(preset.params, args)
    except (OSError, TypeError, ValueError) as exc:
        parser.error(f"Invalid parameters: {exc}")
        return 2

    try:
        style = _override_style(preset.style, args)
    except ValueError as exc:
        parser.error(str(exc))
        return 2

    provider = None
    if args.caption_url:
        provider = CaptionDescriptionProvider(
            args.caption_url,
            token=os.getenv("MOCKUPDIFF_CAPTION_TOKEN"),
            timeout=params.description_timeout_s,
        )

    result = inspect_images(
        args.design,
        args.page,
        params=params,
        style=style,
        description_provider=provider,
    )

    if args.json:
        write_json_report(result, args.json)
    _write_images(result, args.overlay, args.screenshots)
    _print_summary(result)

    return 0 if result.success else 1


def _override_params(preset_params: InspectionParams, args: argparse.Namespace) -> InspectionParams:
    overrides = {}
    if args.params:
        overrides.update(read_json(Path(args.params)))
    for field_name, arg_name in (
        ("diff_threshold", "diff_threshold"),
        ("diff_mode", "diff_mode"),
        ("morph_kernel_px", "morph_kernel"),
        ("region_margin_px", "margin"),
        ("min_region_area_px", "min_area"),
        ("merge_distance_px", "merge_distance"),
        ("description_timeout_s", "timeout"),
    ):
        value = getattr(args, arg_name)
        if value is not None:
            overrides[field_name] = value
    return preset_params.copy(**overrides)


def _override_style(preset_style: OverlayStyle, args: argparse.Namespace) -> OverlayStyle:
    return preset_style.with_overrides(
        stroke_color=parse_color(args.stroke_color),
        marker_text_color=parse_color(args.marker_color),
    )


def _write_images(result: InspectionResult, overlay_path: Optional[str], screenshot_dir: Optional[str]) -> None:
    if overlay_path and result.overlay_image:
        write_bytes(Path(overlay_path), data_uri_payload(result.overlay_image))
        logger.info("Overlay saved to %s", overlay_path)
    if screenshot_dir:
        for issue in result.regions:
            target = Path(screenshot_dir) / f"issue_{issue.id:03d}_{issue.element_type}.png"
            write_bytes(target, data_uri_payload(issue.screenshot))


def _print_summary(result: InspectionResult) -> None:
    if not result.success:
        print(f"Inspection failed: {result.error}", file=sys.stderr)
        return
    print(f"Similarity: {result.similarity * 100:.1f}%")
    if result.message:
        print(result.message)
        return
    critical, medium, minor = severity_counts(result.regions)
    print(f"{len(result.regions)} issues ({critical} critical, {medium} medium, {minor} minor)")
    for issue in result.regions:
        print(
            f"  #{issue.id} [{issue.severity}] {issue.element_type} "
            f"at {issue.x},{issue.y} {issue.width}x{issue.height}: {issue.description}"
        )


if __name__ == "__main__":
    sys.exit(main())
