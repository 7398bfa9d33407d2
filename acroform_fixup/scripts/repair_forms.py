"""Apply a form fixup to every PDF in a folder and save the results to another folder."""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import pikepdf

from ..fixup import Fixup, fixup_from_name
from ..form_accessor import get_form
from ..orphan_scanner import scan_orphan_widgets

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("acroform-fixup-repair")


def _repair_file(source: Path, target: Path, fixup: Fixup) -> bool:
    with pikepdf.open(source) as pdf:
        orphans_before = scan_orphan_widgets(pdf).orphan_count
        tree = get_form(pdf, fixup)
        orphans_after = scan_orphan_widgets(pdf).orphan_count
        pdf.save(target)

    logger.info(
        "%s: %d root field(s), orphan widgets %d -> %d",
        source.name,
        len(tree.root_indices),
        orphans_before,
        orphans_after,
    )
    return orphans_after < orphans_before


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input_dir", type=Path)
    parser.add_argument("output_dir", type=Path)
    parser.add_argument(
        "--fixup",
        default="create",
        help="none, default or create (default: create)",
    )
    args = parser.parse_args(argv)

    fixup = fixup_from_name(args.fixup)
    sources = sorted(args.input_dir.glob("*.pdf"))
    if not sources:
        logger.info("No PDF files found in %s", args.input_dir)
        return 0

    args.output_dir.mkdir(parents=True, exist_ok=True)
    repaired = 0
    failed = 0
    for source in sources:
        try:
            if _repair_file(source, args.output_dir / source.name, fixup):
                repaired += 1
        except Exception:
            failed += 1
            logger.exception("Failed to process %s", source)

    logger.info(
        "Repair complete: %d of %d file(s) gained fields, %d failed",
        repaired,
        len(sources),
        failed,
    )
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
