import argparse
import sys

from .errors import PipelineError
from .pipeline import PipelineRunner
from .utils.logger import get_logger

DEFAULT_CONFIG = "config/default.yaml"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Predict math-class failure from PISA 2000 items.")
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG,
        help="Path to the YAML configuration.",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Run the full pipeline; exit non-zero naming the failing stage."""
    args = parse_args(argv)
    try:
        PipelineRunner(args.config).run()
    except PipelineError as exc:
        get_logger("pisa_math").error(f"Pipeline halted in stage {exc.stage}: {exc.message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
