import logging
import sys

from .command_registry import build_parser
from .notebook import commands  # noqa: F401  (registers nbrun, nbprune)
from .notebook.errors import PipelineError


def _configure_logging(verbose):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser(prog="pynb")
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2
    _configure_logging(getattr(args, "verbose", 0) or 0)
    kwargs = {
        k: v for k, v in vars(args).items() if k not in ("command", "_handler")
    }
    try:
        retval = args._handler(**kwargs)
    except (OSError, ValueError, PipelineError) as e:
        print(f"Error: {e}", file=sys.stderr, flush=True)
        return 1
    return retval or 0


if __name__ == "__main__":
    sys.exit(main())
