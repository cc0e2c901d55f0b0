"""
Command-line interface for the OMR scoring app.

Usage:
    python -m omr_scoring decode --input FILE --template TEMPLATE [OPTIONS]
    python -m omr_scoring score --input FILE --template TEMPLATE --answer-key KEY [OPTIONS]
    python -m omr_scoring batch-process --directory DIR --template TEMPLATE [OPTIONS]

TEMPLATE is a JSON file or a built-in template name (MEB_STANDARD,
LGS_STANDARD, TYT_STANDARD, STUDENT_FIRST, K12NET).
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Optional

from pydantic import ValidationError

from omr_scoring.config import Settings, get_settings
from omr_scoring.models.answer_key import AnswerKey
from omr_scoring.models.scoring import EXAM_PRESETS, get_exam_preset
from omr_scoring.models.template import PRESET_TEMPLATES, Template
from omr_scoring.services.batch_processor import decode_text_concurrent, process_directory
from omr_scoring.services.file_validator import decode_text_content
from omr_scoring.services.scoring_engine import score_batch


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="omr-scoring",
        description="OMR Scoring CLI - Decode and score optical reader exports locally"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_common(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--template",
            "-t",
            type=str,
            required=True,
            help=f"Template JSON file or built-in name ({', '.join(sorted(PRESET_TEMPLATES))})"
        )
        sub.add_argument(
            "--skip-header",
            type=int,
            default=0,
            help="Leading header lines to ignore (default: 0)"
        )
        sub.add_argument(
            "--workers",
            "-w",
            type=int,
            default=None,
            help="Lines or files processed in parallel (default: from env or 1)"
        )

    decode_parser = subparsers.add_parser("decode", help="Decode a scanner export to JSON")
    decode_parser.add_argument("--input", "-i", type=str, required=True, help="Scanner export file")
    decode_parser.add_argument("--output", "-o", type=str, default=None, help="Output JSON (default: stdout)")
    add_common(decode_parser)

    score_parser = subparsers.add_parser("score", help="Decode and score a scanner export")
    score_parser.add_argument("--input", "-i", type=str, required=True, help="Scanner export file")
    score_parser.add_argument("--output", "-o", type=str, default=None, help="Output JSON (default: stdout)")
    score_parser.add_argument("--answer-key", "-k", type=str, required=True, help="Answer key JSON file")
    score_parser.add_argument(
        "--exam-type",
        "-e",
        type=str,
        default=None,
        help=f"Scoring preset ({', '.join(sorted(EXAM_PRESETS))}; default: from key or env)"
    )
    add_common(score_parser)

    batch_parser = subparsers.add_parser(
        "batch-process",
        help="Decode (and score) every scanner export in a directory"
    )
    batch_parser.add_argument("--directory", "-d", type=str, required=True, help="Directory of scanner exports")
    batch_parser.add_argument(
        "--pattern",
        "-p",
        type=str,
        default="*.txt",
        help="Glob pattern for input files (default: *.txt)"
    )
    batch_parser.add_argument("--answer-key", "-k", type=str, default=None, help="Answer key JSON file (decode only when omitted)")
    batch_parser.add_argument("--exam-type", "-e", type=str, default=None, help="Scoring preset")
    add_common(batch_parser)

    return parser


def load_template(value: str) -> Template:
    """
    Load a template from a JSON file path or a built-in name.

    Raises:
        ValueError: If the name is unknown or the file is not a valid template
    """
    preset = PRESET_TEMPLATES.get(value.strip().upper())
    if preset is not None and not os.path.exists(value):
        return preset
    if not os.path.isfile(value):
        raise ValueError(f"Template not found: {value}")
    with open(value, "r", encoding="utf-8") as f:
        return Template.model_validate_json(f.read())


def load_answer_key(path: str) -> AnswerKey:
    """Load an answer key JSON file."""
    if not os.path.isfile(path):
        raise ValueError(f"Answer key not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return AnswerKey.model_validate_json(f.read())


def resolve_workers(args: argparse.Namespace, settings: Settings) -> Optional[int]:
    workers = args.workers if args.workers is not None else settings.batch_workers
    if workers < 1 or workers > 50:
        print("Error: --workers must be between 1 and 50")
        return None
    return workers


def write_output(payload: dict, output: Optional[str]) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Results written to {output}")
    else:
        print(text)


async def decode_command(args: argparse.Namespace) -> int:
    """
    Execute the decode or score command.

    Args:
        args: Parsed command-line arguments

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Configuration error: {e}")
        return 1

    workers = resolve_workers(args, settings)
    if workers is None:
        return 1

    try:
        template = load_template(args.template)
        answer_key = load_answer_key(args.answer_key) if args.command == "score" else None
        if not os.path.isfile(args.input):
            print(f"Error: Input file not found: {args.input}")
            return 1
        with open(args.input, "rb") as fh:
            text = decode_text_content(fh.read())
    except (ValueError, ValidationError) as e:
        print(f"Error: {e}")
        return 1

    result = await decode_text_concurrent(
        text,
        template,
        workers=workers,
        config=settings.decoder_config(),
        thresholds=settings.quality_thresholds(),
        skip_header_lines=args.skip_header,
    )
    payload = result.model_dump(mode="json")

    if answer_key is not None:
        try:
            config = get_exam_preset(args.exam_type or answer_key.exam_type or settings.default_exam_type)
        except ValueError as e:
            print(f"Error: {e}")
            return 1
        scores = score_batch(result, answer_key, config)
        payload["exam_type"] = config.name
        payload["scores"] = [s.model_dump(mode="json") for s in scores]

    write_output(payload, args.output)

    summary = result.summary
    print(
        f"Decoded {summary.total_lines} lines: {summary.success_count} ok, "
        f"{summary.needs_review_count} review, {summary.rejected_count} rejected",
        file=sys.stderr,
    )
    for warning in summary.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    return 0


async def batch_process_command(args: argparse.Namespace) -> int:
    """
    Execute batch processing command.

    Args:
        args: Parsed command-line arguments

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Configuration error: {e}")
        return 1

    directory = args.directory
    if not os.path.exists(directory):
        print(f"Error: Directory not found: {directory}")
        return 1

    if not os.path.isdir(directory):
        print(f"Error: Not a directory: {directory}")
        return 1

    workers = resolve_workers(args, settings)
    if workers is None:
        return 1

    try:
        template = load_template(args.template)
        answer_key = load_answer_key(args.answer_key) if args.answer_key else None
        scoring_config = None
        if answer_key is not None:
            scoring_config = get_exam_preset(
                args.exam_type or answer_key.exam_type or settings.default_exam_type
            )
    except (ValueError, ValidationError) as e:
        print(f"Error: {e}")
        return 1

    try:
        results = await process_directory(
            directory=directory,
            template=template,
            workers=workers,
            answer_key=answer_key,
            scoring_config=scoring_config,
            pattern=args.pattern,
            config=settings.decoder_config(),
            thresholds=settings.quality_thresholds(),
            skip_header_lines=args.skip_header,
        )
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 1

    succeeded = sum(1 for r in results if r["status"] == "ok")
    return 0 if succeeded > 0 else 1


def main() -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.command in ("decode", "score"):
        return asyncio.run(decode_command(args))
    elif args.command == "batch-process":
        return asyncio.run(batch_process_command(args))
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
