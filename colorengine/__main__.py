"""
Compare or benchmark the quantizers on a synthetic image.

Usage:
    python -m colorengine compare --image-kind geometric --target 8 --seed 42
    python -m colorengine benchmark --image-kind natural --rounds 3

The report is printed to stdout as JSON; logs go to stderr.
"""
import argparse
import json
import sys
from typing import List, Optional

from pydantic import ValidationError

from colorengine.schemas import ExtractionConfig
from colorengine.services.quantization import ComparisonHarness, generate_test_image
from colorengine.services.quantization.synthetic import IMAGE_KINDS
from colorengine.utils.logging import configure_logging, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="colorengine",
                                     description="Compare palette quantizers on a synthetic image.")
    parser.add_argument("command", choices=["compare", "benchmark"], help="What to run")
    parser.add_argument("--image-kind", choices=sorted(IMAGE_KINDS), default="geometric",
                        help="Synthetic image to quantize")
    parser.add_argument("--width", type=int, default=128, help="Image width")
    parser.add_argument("--height", type=int, default=128, help="Image height")
    parser.add_argument("--target", type=int, default=8, help="Target color count")
    parser.add_argument("--max-colors", type=int, default=None, help="Max color count (default: target)")
    parser.add_argument("--threshold", type=float, default=15.0, help="Color distance threshold for fusion")
    parser.add_argument("--quality-threshold", type=float, default=0.0, help="Minimum quality score")
    parser.add_argument("--memory-limit", type=float, default=512.0, help="Working-set limit in MB")
    parser.add_argument("--seed", type=int, default=None, help="Seed for image noise and K-means++")
    parser.add_argument("--rounds", type=int, default=3, help="Benchmark rounds")
    parser.add_argument("--log-level", default=None, help="Log level (default: COLORENGINE_LOG_LEVEL)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        configure_logging(args.log_level)
    except ValueError as e:
        sys.stderr.write(f"{e}\n")
        return 2

    log = get_logger()

    try:
        config = ExtractionConfig(
            target_color_count=args.target,
            max_color_count=args.max_colors if args.max_colors is not None else args.target,
            quality_threshold=args.quality_threshold,
            color_distance_threshold=args.threshold,
            memory_limit=args.memory_limit,
        )
        image = generate_test_image(args.image_kind, args.width, args.height, seed=args.seed)
    except (ValidationError, ValueError) as e:
        sys.stderr.write(f"Invalid arguments: {e}\n")
        return 2

    log.debug("Extraction config", extra={'config': config.model_dump(by_alias=True)})
    log.info("Running quantizer comparison", extra={
        'command': args.command,
        'image_kind': args.image_kind,
        'size': f"{args.width}x{args.height}",
        'target': args.target,
    })

    harness = ComparisonHarness(seed=args.seed)
    if args.command == "compare":
        report = harness.compare(image, config)
        output = report.model_dump(by_alias=True)
        errors = report.errors
        failed = len(errors) == len(harness.quantizers)
    else:
        try:
            output = harness.benchmark(image, config, rounds=args.rounds)
        except ValueError as e:
            sys.stderr.write(f"Invalid arguments: {e}\n")
            return 2
        errors = output['lastReport']['errors']
        failed = output['lastReport']['winner'] is None

    if failed:
        log.error("Every algorithm failed", extra={'errors': errors})
    elif errors:
        log.warning("Some algorithms failed", extra={'errors': errors})

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    sys.stdout.flush()
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
