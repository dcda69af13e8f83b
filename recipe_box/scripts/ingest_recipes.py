#!/usr/bin/env python3
"""CLI entrypoint for ingesting recipe documents into soustack JSON."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from recipe_box.soustack_ingest import adapters, config, lines, pipeline, segment
from recipe_box.soustack_ingest.errors import IngestError
from recipe_box.soustack_ingest.prep import PrepExtractionMode

logger = logging.getLogger("recipe_box.soustack_ingest.cli")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def resolve_input(value: str) -> Path:
    path = Path(value).expanduser().resolve()
    if not path.exists():
        raise SystemExit(f"Input not found: {path}")
    return path


def command_ingest(args: argparse.Namespace) -> None:
    source = resolve_input(args.input)
    out_dir = Path(args.out).expanduser().resolve()
    prep_mode = config.resolve_prep_mode(args.prep_mode)
    if args.debug_segments:
        logging.getLogger("recipe_box.soustack_ingest.segment").setLevel(logging.DEBUG)
    logger.info("Ingesting %s (prep mode: %s)", source, prep_mode.value)
    try:
        result = pipeline.run(
            source,
            out_dir,
            prep_mode=prep_mode,
            min_pdf_chars=args.min_pdf_chars,
            pdf_backends=config.parse_backend_list(args.pdf_backends),
            debug=args.debug_segments,
        )
    except IngestError as exc:
        raise SystemExit(str(exc)) from exc
    print(f"Ingested {len(result.recipes)} recipe(s) from {source}.")
    errors = result.errors()
    if errors:
        print("Skipped:")
        for error in errors:
            print(f"- {error}")
    if not result.recipes:
        raise SystemExit("No recipes emitted (0)")


def command_segment(args: argparse.Namespace) -> None:
    source = resolve_input(args.input)
    try:
        adapter_output = adapters.load_input(
            source,
            min_pdf_chars=args.min_pdf_chars,
            pdf_backends=config.parse_backend_list(args.pdf_backends),
        )
    except IngestError as exc:
        raise SystemExit(str(exc)) from exc
    normalized = lines.normalize(adapter_output.text)
    segmented = segment.segment(normalized.lines, debug=True)
    print_chunk_table(segmented)
    for warning in adapter_output.warnings:
        print(f"warning: {warning}")


def print_chunk_table(segmented: segment.SegmentedText) -> None:
    print("Lines".ljust(12), "Conf".ljust(6), "Title".ljust(40), "Evidence")
    print("-" * 95)
    for chunk in segmented.chunks:
        span = f"{chunk.start_line}-{chunk.end_line}"
        title = (chunk.title_guess or "-")[:40]
        print(span.ljust(12), f"{chunk.confidence:.2f}".ljust(6), title.ljust(40), chunk.evidence)
    print(f"\n{len(segmented.chunks)} chunk(s)")


def add_pdf_options(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--pdf-backends",
        help=f"Comma-separated PDF extraction backend order (overrides {config.PDF_BACKENDS_ENV})",
    )
    subparser.add_argument(
        "--min-pdf-chars",
        type=int,
        help=f"Minimum characters required from a PDF (overrides {config.MIN_PDF_CHARS_ENV})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser_obj = argparse.ArgumentParser(description="Ingest recipe sources into soustack JSON")
    parser_obj.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser_obj.add_subparsers(dest="command")

    ingest_parser = subparsers.add_parser("ingest", help="Extract recipes and write soustack files")
    ingest_parser.add_argument("input", help="Path to a txt, md, html, docx, pdf, rtf or rtfd source")
    ingest_parser.add_argument("--out", required=True, help="Output directory")
    ingest_parser.add_argument(
        "--prep-mode",
        choices=[mode.value for mode in PrepExtractionMode],
        help=f"Prep extraction mode (overrides {config.PREP_MODE_ENV})",
    )
    ingest_parser.add_argument(
        "--debug-segments",
        action="store_true",
        help="Log the segmentation reason for every chunk",
    )
    add_pdf_options(ingest_parser)
    ingest_parser.set_defaults(func=command_ingest)

    segment_parser = subparsers.add_parser("segment", help="Show recipe boundaries without extracting")
    segment_parser.add_argument("input", help="Path to the source file")
    add_pdf_options(segment_parser)
    segment_parser.set_defaults(func=command_segment)

    return parser_obj


def main(argv: list[str] | None = None) -> None:
    parser_obj = build_parser()
    args = parser_obj.parse_args(argv)
    if not getattr(args, "command", None):
        parser_obj.print_help()
        return
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
