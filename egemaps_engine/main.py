"""Command-line entry point

Usage:
    egemaps-analyze FILE [--summary] [--time-series] [--timeout SECONDS]
                         [--f0-min HZ] [--f0-max HZ] [--baseline FILE]
                         [--log-level LEVEL]

Decodes FILE with librosa, runs the eGeMAPSv02 engine and prints the result
as JSON on stdout. With --baseline, a second file is analysed too and the
report gains a comparison of the two voice summaries. Exits with status 1
on any error.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import librosa
import numpy as np

from egemaps_engine import ENGINE_VERSION
from egemaps_engine.config.config_loader import config
from egemaps_engine.engine import AnalysisOptions, EGeMAPSEngine
from egemaps_engine.models.frames import DecodedAudio
from egemaps_engine.summary import compare_summaries, summarize


logger = logging.getLogger(__name__)


def setup_logging(level: Optional[str] = None):
    """Configure root logging (stderr, so stdout stays pure JSON)"""
    level = (level or config.get('logging.level', 'INFO')).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def load_audio(path: Path) -> DecodedAudio:
    """Decode an audio file at its native rate and channel layout"""
    samples, sample_rate = librosa.load(str(path), sr=None, mono=False)
    samples = np.asarray(samples)
    if samples.ndim == 1:
        return DecodedAudio(samples=samples, sample_rate=int(sample_rate), channels=1)
    # librosa returns (channels, frames)
    return DecodedAudio(samples=samples.T, sample_rate=int(sample_rate), channels=samples.shape[0])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='egemaps-analyze',
        description='Extract the 88 eGeMAPSv02 acoustic features from an audio file.',
    )
    parser.add_argument('file', type=Path, help='Audio file to analyse')
    parser.add_argument('--summary', action='store_true',
                        help='Include a human-readable voice summary')
    parser.add_argument('--time-series', action='store_true',
                        help='Include frame-level F0, voicing, loudness and HNR series')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Give up after this many seconds')
    parser.add_argument('--f0-min', type=float, default=None, help='Lower F0 search bound in Hz')
    parser.add_argument('--f0-max', type=float, default=None, help='Upper F0 search bound in Hz')
    parser.add_argument('--baseline', type=Path, default=None,
                        help='Earlier recording to compare the voice summary against')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default from config)')
    parser.add_argument('--version', action='version', version=ENGINE_VERSION)
    return parser


async def main_async(args: argparse.Namespace) -> int:
    """Run one analysis and print the JSON report"""
    for path in (args.file, args.baseline):
        if path is not None and not path.exists():
            logger.error(f"Audio file not found: {path}")
            return 1

    engine = EGeMAPSEngine()
    init = engine.initialize()
    if not init.ok:
        logger.error(f"Engine initialization failed: {init.error}")
        return 1

    audio = load_audio(args.file)
    options = AnalysisOptions(
        f0_min=args.f0_min,
        f0_max=args.f0_max,
        include_lld_time_series=args.time_series,
    )
    baseline = None
    try:
        result = await engine.analyze_async(audio, options, timeout=args.timeout)
        if result.ok and args.baseline is not None:
            baseline = await engine.analyze_async(
                load_audio(args.baseline),
                AnalysisOptions(f0_min=args.f0_min, f0_max=args.f0_max),
                timeout=args.timeout,
            )
            if not baseline.ok:
                result = baseline
    finally:
        engine.close()

    if not result.ok:
        logger.error(f"Analysis failed: {result.error}")
        print(json.dumps({
            "version": result.version,
            "error": {"code": result.error.code.value, "message": result.error.message},
        }, indent=2))
        return 1

    report = {
        "version": result.version,
        "file": str(args.file),
        "features": result.features.to_dict(),
    }
    if args.summary or baseline is not None:
        summary = summarize(result.features)
        report["summary"] = summary.to_dict()
        if baseline is not None:
            report["comparison"] = compare_summaries(summarize(baseline.features), summary).to_dict()
    if result.lld_time_series is not None:
        report["lld_time_series"] = result.lld_time_series

    print(json.dumps(report, indent=2))
    return 0


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    try:
        status = asyncio.run(main_async(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        status = 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        status = 1
    sys.exit(status)


if __name__ == "__main__":
    main()
