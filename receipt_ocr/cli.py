"""Command-line interface for single-document and batch receipt extraction.

Provides subcommands for extracting one document to JSON and for
processing a folder of documents sequentially into a JSON results file.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from receipt_ocr.exceptions import ReceiptOCRError
from receipt_ocr.service.controller import ProcessingController, build_controller
from receipt_ocr.service.models import InputDocument, ProcessingOptions
from receipt_ocr.utils.config import load_config
from receipt_ocr.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_SUFFIXES = frozenset(
    {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tiff", ".tif", ".webp", ".pdf"}
)


def _find_documents(input_dir: Path) -> list[Path]:
    """List receipt images and PDFs in a directory, matching suffixes in any case."""
    return sorted(
        p
        for p in input_dir.iterdir()
        if p.is_file() and p.suffix.lower() in _SUPPORTED_SUFFIXES
    )


async def extract_single(
    controller: ProcessingController,
    file_path: Path,
    options: ProcessingOptions | None = None,
) -> dict[str, Any]:
    """Process one document and return the serialized result.

    Args:
        controller: Processing controller to use.
        file_path: Path to the document file.
        options: Per-call processing options.

    Returns:
        The result dictionary with the file name added.
    """
    document = InputDocument.from_path(file_path)
    result = await controller.process_document(document, options)
    return {"filename": file_path.name, **result.to_dict()}


async def process_folder(
    controller: ProcessingController,
    input_dir: Path,
    options: ProcessingOptions | None = None,
    verbose: bool = False,
) -> dict[str, Any]:
    """Process every supported document in a folder, one at a time.

    Args:
        controller: Processing controller to use.
        input_dir: Directory containing document files.
        options: Per-call processing options applied to every document.
        verbose: Whether to print per-file progress.

    Returns:
        Summary counts plus the per-document results.
    """
    files = _find_documents(input_dir)
    if not files:
        logger.warning("No documents found in %s", input_dir)

    results: list[dict[str, Any]] = []
    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")
        try:
            results.append(await extract_single(controller, file_path, options))
        except OSError as exc:
            logger.error("Failed to read %s: %s", file_path.name, exc)
            results.append(
                {"filename": file_path.name, "success": False, "error": str(exc)}
            )

    successful = sum(1 for r in results if r["success"])
    return {
        "total": len(files),
        "successful": successful,
        "failed": len(files) - successful,
        "statistics": controller.get_statistics(),
        "results": results,
    }


def _write_json(payload: dict[str, Any], output: Path | None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text)
        print(f"Output written to {output}")
    else:
        print(text)


def _print_summary(summary: dict[str, Any], output: Path) -> None:
    stats = summary["statistics"]
    rule = "-" * 44
    print(f"\n{rule}\nReceipts processed: {summary['total']}\n{rule}")
    print(f"  accepted        {summary['successful']}")
    print(f"  failed          {summary['failed']}")
    print(f"  success rate    {stats['success_rate']:.1f}%")
    print(f"  avg quality     {stats['average_quality']:.1f}")
    print(f"  avg time        {stats['average_time_ms']:.0f} ms")
    print(f"  results         {output}")


async def _run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    setup_logging(config.log_level)
    controller = build_controller(config)

    if args.command == "extract":
        options = ProcessingOptions(
            max_retries=(
                config.processing.max_retries
                if args.max_retries is None
                else args.max_retries
            ),
            timeout_ms=(
                config.processing.timeout_ms
                if args.timeout_ms is None
                else args.timeout_ms
            ),
            enable_preprocessing=(
                config.processing.enable_preprocessing and not args.no_preprocessing
            ),
        )
    else:
        options = None

    try:
        async with controller:
            if args.command == "extract":
                result = await extract_single(controller, args.file, options)
                _write_json(result, args.output)
                return 0 if result["success"] else 1

            summary = await process_folder(
                controller, args.input_dir, options, args.verbose
            )
            _write_json(summary, args.output)
            _print_summary(summary, args.output)
            return 0
    except ReceiptOCRError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Receipt and invoice OCR extractor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c", "--config", type=Path, default=None, help="YAML configuration file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("extract", help="Process a single document")
    single_parser.add_argument("file", type=Path, help="Document file to process")
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")
    single_parser.add_argument(
        "--max-retries", type=int, default=None, help="Extra attempts after the first"
    )
    single_parser.add_argument(
        "--timeout-ms", type=int, default=None, help="Deadline per attempt"
    )
    single_parser.add_argument(
        "--no-preprocessing",
        action="store_true",
        help="Recognize the resized grayscale image only",
    )

    batch_parser = subparsers.add_parser("batch", help="Process a folder of documents")
    batch_parser.add_argument(
        "input_dir", type=Path, help="Input directory with documents"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.json"),
        help="Output JSON file (default: results.json)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    if args.command == "batch" and not args.input_dir.is_dir():
        print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
        sys.exit(1)
    elif args.command == "extract" and not args.file.exists():
        print(f"Error: {args.file} does not exist", file=sys.stderr)
        sys.exit(1)
    elif args.command is None:
        parser.print_help()
        sys.exit(0)

    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
