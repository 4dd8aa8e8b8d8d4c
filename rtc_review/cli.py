from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Sequence

from rtc_review import TOOL_VERSION
from rtc_review.foundation.config_io import load_config
from rtc_review.foundation.logging_utils import configure_logging
from rtc_review.framework.config import DEFAULT_THRESHOLDS, ScoringThresholds, thresholds_from_config
from rtc_review.framework.summary import SessionSummary, summarize_session
from rtc_review.parse import StatsParseError, detect_format, parse_stats_dump
from rtc_review.report import score_band, summary_frame, summary_to_dict

logger = logging.getLogger(__name__)

EXIT_PARSE_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rtc_review", description="Offline WebRTC stats dump analyzer")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {TOOL_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="Print the detected dump format")
    detect.add_argument("dump", help="Path to an RTCStatsDump or webrtc-internals export")

    summarize = sub.add_parser("summarize", help="Score a dump and list its worst issues")
    summarize.add_argument("dump", help="Path to an RTCStatsDump or webrtc-internals export")
    summarize.add_argument(
        "--config",
        "--config-path",
        dest="config_path",
        help="YAML config with a scoring: section (default: config/config.yaml under the repo root, else built-in thresholds).",
    )
    summarize.add_argument("--output-dir", dest="output_dir", help="Write <dump>_summary.json here")
    summarize.add_argument("--csv", action="store_true", help="Also write <dump>_metrics.csv (requires --output-dir)")
    return parser


def _read_dump(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()
    except UnicodeDecodeError as exc:
        raise StatsParseError(f"Stats dump is not UTF-8 text: {path} ({exc.reason} at byte {exc.start})") from exc


def _resolve_thresholds(config_path: str | None) -> ScoringThresholds:
    try:
        cfg, meta = load_config(config_path)
    except FileNotFoundError:
        if config_path:
            raise
        logger.debug("No config file found; using built-in scoring thresholds")
        return DEFAULT_THRESHOLDS
    logger.debug("Loaded config (%s): %s", meta["mode"], ", ".join(meta["paths"]))
    return thresholds_from_config(cfg)


def _print_summary(summary: SessionSummary) -> None:
    print(f"rtc_review: overall_score={summary.overall_score} ({score_band(summary.overall_score)})")
    for item in summary.track_summaries:
        print(
            f"  track {item.peer_connection_id}/{item.track.id} "
            f"{item.track.kind} {item.track.direction} score={item.score}"
        )
    if not summary.issues:
        print("rtc_review: no scored metrics")
        return
    print("rtc_review: worst issues:")
    for rank, issue in enumerate(summary.issues, start=1):
        print(f"  {rank}. {issue.kind} {issue.direction} {issue.track_id}: {issue.detail}")


def _write_outputs(summary: SessionSummary, dump_path: str, output_dir: str, *, write_csv: bool) -> None:
    os.makedirs(output_dir, exist_ok=True)
    stem = os.path.splitext(os.path.basename(dump_path))[0]
    json_path = os.path.join(output_dir, f"{stem}_summary.json")
    with open(json_path, "w", encoding="utf-8") as handle:
        json.dump(summary_to_dict(summary), handle, indent=2)
    print(f"rtc_review: Wrote {json_path}")

    if write_csv:
        csv_path = os.path.join(output_dir, f"{stem}_metrics.csv")
        summary_frame(summary).to_csv(csv_path, index=False)
        print(f"rtc_review: Wrote {csv_path}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    configure_logging(verbose=args.verbose)

    if args.command == "summarize" and args.csv and not args.output_dir:
        raise ValueError("--csv requires --output-dir")

    try:
        content = _read_dump(args.dump)
        if args.command == "detect":
            print(detect_format(content))
            return 0
        session = parse_stats_dump(content)
    except StatsParseError as exc:
        print(f"rtc_review: error: {exc}", file=sys.stderr)
        return EXIT_PARSE_ERROR

    if args.command == "summarize":
        summary = summarize_session(session, _resolve_thresholds(args.config_path))
        _print_summary(summary)
        if args.output_dir:
            _write_outputs(summary, args.dump, args.output_dir, write_csv=args.csv)
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
