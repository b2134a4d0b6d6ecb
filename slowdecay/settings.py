from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple


@dataclass
class Settings:
    inputs: List[str] = field(default_factory=list)
    az_range: Tuple[float, float] = (0.0, 360.0)
    gc_range: Tuple[float, float] = (0.0, 180.0)
    output_dir: str = "."
    log_level: str = "INFO"


def parse_args(argv: Optional[Sequence[str]] = None) -> Settings:
    parser = argparse.ArgumentParser(
        description="Slowness and decay-rate profiles from core-diffracted alignment results"
    )
    parser.add_argument("inputs", nargs="+",
                        help="JSON files of alignment results, processed in order")
    parser.add_argument("--az-range", nargs=2, type=float, default=[0.0, 360.0],
                        metavar=("AZMIN", "AZMAX"),
                        help="Azimuth window in degrees; may straddle 0/360 (within +/-540)")
    parser.add_argument("--gc-range", nargs=2, type=float, default=[0.0, 180.0],
                        metavar=("GCMIN", "GCMAX"),
                        help="Great-circle distance window in degrees")
    parser.add_argument("--output-dir", default=".",
                        help="Directory for the profile artifacts (created if missing)")
    parser.add_argument("--log-level", default="INFO",
                        help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    args = parser.parse_args(argv)

    return Settings(
        inputs=list(args.inputs),
        az_range=(args.az_range[0], args.az_range[1]),
        gc_range=(args.gc_range[0], args.gc_range[1]),
        output_dir=args.output_dir,
        log_level=args.log_level.upper(),
    )
