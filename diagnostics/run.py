"""Command-line entry point for running diagnostics."""

from __future__ import annotations

import argparse
from pathlib import Path

from ai.diagnostics import probe as ai_probe
from config.diagnostics import probe as config_probe
from diagnostics.runner import Probe, format_results, has_failures, run_diagnostics
from interaction.diagnostics import probe as audio_probe
from interaction.microphone_diagnostics import probe as microphone_probe


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(description="Run diagnostics probes.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Config directory to check instead of the configured one.",
    )
    parser.add_argument(
        "--skip-audio",
        action="store_true",
        help="Skip the speaker and microphone probes.",
    )
    return parser.parse_args(argv)


def build_probes(config_dir: Path | None = None, *, skip_audio: bool = False) -> list[Probe]:
    def config_probe_with_dir():
        return config_probe(config_dir=config_dir)

    probes: list[Probe] = [config_probe_with_dir, ai_probe]
    if not skip_audio:
        probes.extend([audio_probe, microphone_probe])
    return probes


def main(argv: list[str] | None = None) -> int:
    """Run diagnostics and return an exit code."""

    args = parse_args(argv)
    results = run_diagnostics(build_probes(args.config_dir, skip_audio=args.skip_audio))
    print(format_results(results))
    return 1 if has_failures(results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
