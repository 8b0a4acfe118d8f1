"""Argument parsing functionality for monolift."""

import argparse
from constants import Constants


def _add_filter_args(parser):
    parser.add_argument("--only",
                        dest="ONLY",
                        help="Only include packages whose name matches the glob(s), comma separated",
                        action="store",
                        type=str)
    parser.add_argument("--ignore",
                        dest="IGNORE",
                        help="Exclude packages whose name matches the glob(s), comma separated",
                        action="store",
                        type=str)
    parser.add_argument("--only-fs",
                        dest="ONLY_FS",
                        help="Only include packages whose directory matches the glob(s)",
                        action="store",
                        type=str)
    parser.add_argument("--ignore-fs",
                        dest="IGNORE_FS",
                        help="Exclude packages whose directory matches the glob(s)",
                        action="store",
                        type=str)
    parser.add_argument("--changed-since",
                        dest="CHANGED_SINCE",
                        help="Only include packages with files changed since the given git ref",
                        action="store",
                        type=str)


def _add_runner_args(parser):
    parser.add_argument("--cwd",
                        dest="CWD",
                        help="Run as if started in this directory",
                        action="store",
                        type=str)
    parser.add_argument("--order",
                        dest="ORDER",
                        help="Task ordering across packages (default: parallel)",
                        action="store",
                        type=str.lower,
                        choices=Constants.ORDER_MODES)
    parser.add_argument("--concurrency",
                        dest="CONCURRENCY",
                        help="Maximum number of packages processed at once",
                        action="store",
                        type=int)


def build_parser():
    """Build the top-level parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="monolift",
        description="monolift - version, publish and run scripts across a JavaScript workspace",
        add_help=True,
    )
    parser.add_argument("--version",
                        action="version",
                        version=f"%(prog)s {Constants.MONOLIFT_VERSION}")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("--set",
                        dest="POLICY_SET",
                        help="Set configuration override (KEY=VALUE format, can be used multiple times)",
                        action="append",
                        type=str,
                        default=[])

    sub = parser.add_subparsers(dest="action", metavar="COMMAND")
    sub.required = True

    version = sub.add_parser("version", help="Bump the patch version of public packages")
    _add_runner_args(version)
    _add_filter_args(version)

    publish = sub.add_parser("publish", help="Publish packages that are ahead of the registry")
    _add_runner_args(publish)
    publish.add_argument("--access",
                         dest="ACCESS",
                         help="Access level passed to npm publish",
                         action="store",
                         type=str,
                         choices=Constants.ACCESS_LEVELS)
    publish.add_argument("--registry",
                         dest="REGISTRY",
                         help="Registry URL to query and publish to",
                         action="store",
                         type=str)
    publish.add_argument("--restore",
                         dest="RESTORE_AFTER_PUBLISH",
                         help="Put the original manifests back after each publish",
                         action="store_true",
                         default=None)

    run = sub.add_parser("run", help="Run a script in every selected package that defines it")
    _add_runner_args(run)
    _add_filter_args(run)
    run.add_argument("SCRIPT", help="Script name")
    run.add_argument("SCRIPT_ARGS",
                     nargs=argparse.REMAINDER,
                     help="Arguments forwarded to the script")

    install = sub.add_parser("install", help="Install workspace dependencies with yarn")
    install.add_argument("--cwd",
                         dest="CWD",
                         help="Run as if started in this directory",
                         action="store",
                         type=str)
    install.add_argument("--pure-lockfile",
                         dest="PURE_LOCKFILE",
                         help="Do not generate a lockfile",
                         action="store_true")

    ls = sub.add_parser("ls", help="List workspace packages and their internal dependencies")
    ls.add_argument("--cwd",
                    dest="CWD",
                    help="Run as if started in this directory",
                    action="store",
                    type=str)
    _add_filter_args(ls)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
