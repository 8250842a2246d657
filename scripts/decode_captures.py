#!/usr/bin/env python3
"""
Capture Decode Check
====================

Standalone script that decodes a directory of captured precipitation
messages without touching the broker or the ingest endpoint.

This script:
    1. Loads every *.xml file in the directory (name order)
    2. Decodes each one with the production decoder
    3. Logs grid size, fill count and non-zero cells per file
    4. Reports a final summary

Usage:
    python scripts/decode_captures.py ./captures
    python scripts/decode_captures.py ./captures --product-id 9850 --write-json out/
"""

import argparse
import logging
import os
import sys
import time
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from swim_relay.decode import FrameDecodeError, decode_precip
from swim_relay.serializer import build_precip_json


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_check(
    directory: Path,
    product_id: int,
    max_cells_out: int,
    write_json: Path = None,
) -> dict:
    """
    Decode every capture in a directory.

    Args:
        directory: Directory holding *.xml captures
        product_id: Accepted product id
        max_cells_out: Cell limit passed to the serializer
        write_json: Optional directory for the rendered documents

    Returns:
        Summary counters
    """
    paths = sorted(directory.glob("*.xml"))
    logger.info("=" * 60)
    logger.info(f"Decoding {len(paths)} captures from {directory}")
    logger.info("=" * 60)

    if write_json is not None:
        write_json.mkdir(parents=True, exist_ok=True)

    decoded = rejected = errors = 0
    start_time = time.time()

    for path in paths:
        try:
            frame = decode_precip(path.read_bytes(), product_id)
        except FrameDecodeError as e:
            errors += 1
            logger.error(f"{path.name}: {e}")
            continue

        if frame is None:
            rejected += 1
            logger.warning(f"{path.name}: rejected")
            continue

        decoded += 1
        logger.info(
            f"{path.name}: {frame.cols}x{frame.rows} "
            f"filled={frame.filled_cells} nonZero={frame.non_zero_cells()} "
            f"maxLvl={frame.max_precip_level}"
        )
        if write_json is not None:
            out = write_json / f"{path.stem}.json"
            out.write_bytes(build_precip_json(frame, max_cells_out))

    total_time = time.time() - start_time

    logger.info("=" * 60)
    logger.info("SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Runtime: {total_time:.2f} seconds")
    logger.info(f"Decoded: {decoded}")
    logger.info(f"Rejected: {rejected}")
    logger.info(f"Parse errors: {errors}")
    logger.info("=" * 60)

    return {
        "files": len(paths),
        "decoded": decoded,
        "rejected": rejected,
        "errors": errors,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Decode captured precipitation messages"
    )
    parser.add_argument("directory", type=Path, help="Directory of *.xml captures")
    parser.add_argument(
        "--product-id",
        type=int,
        default=9850,
        help="Accepted product id (default: 9850)",
    )
    parser.add_argument(
        "--max-cells-out",
        type=int,
        default=int(os.environ.get("ITWS_MAX_CELLS_OUT", "0")),
        help="Cell limit for written documents (default: all)",
    )
    parser.add_argument(
        "--write-json",
        type=Path,
        default=None,
        help="Write the rendered documents to this directory",
    )

    args = parser.parse_args()

    if not args.directory.is_dir():
        logger.error(f"Not a directory: {args.directory}")
        sys.exit(2)

    result = run_check(
        directory=args.directory,
        product_id=args.product_id,
        max_cells_out=args.max_cells_out,
        write_json=args.write_json,
    )

    sys.exit(0 if result["errors"] == 0 else 1)


if __name__ == "__main__":
    main()
