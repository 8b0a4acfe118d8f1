"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    EXIT_WARNINGS = 3
    LOCK_CONFLICT = 4
    SUBPROCESS_ERROR = 5
    PUBLISH_ERROR = 6
    TASK_ERROR = 7
    CONFIG_ERROR = 8


class DependencyTypes(Enum):
    """Dependency maps a manifest may declare.

    Args:
        Enum (string): Manifest key of each dependency map.
    """

    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "devDependencies"
    PEER_DEPENDENCIES = "peerDependencies"
    OPTIONAL_DEPENDENCIES = "optionalDependencies"


class OrderModes(Enum):
    """Scheduling orders understood by the task runner.

    Args:
        Enum (string): Order mode names accepted on the CLI and in config.
    """

    PARALLEL = "parallel"
    SERIAL = "serial"
    TOPOLOGICAL = "topological"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    MONOLIFT_VERSION = "0.3.0"
    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    PACKAGE_JSON_FILE = "package.json"
    BACKUP_SUFFIX = ".monolift_backup"
    CONFIG_FILES = [".monolift.yml", ".monolift.yaml"]
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "MONOLIFT_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests

    # Package manager binaries
    YARN_BIN = "yarn"
    NPM_BIN = "npm"
    NODE_MODULES_BIN = ("node_modules", ".bin")

    # Dependency maps unioned when building the workspace graph
    GRAPH_DEPENDENCY_TYPES = [
        DependencyTypes.DEPENDENCIES.value,
        DependencyTypes.DEV_DEPENDENCIES.value,
        DependencyTypes.PEER_DEPENDENCIES.value,
        DependencyTypes.OPTIONAL_DEPENDENCIES.value,
    ]

    # yarn flags for non-default dependency maps
    DEPENDENCY_TYPE_FLAGS = {
        "dev": DependencyTypes.DEV_DEPENDENCIES.value,
        "peer": DependencyTypes.PEER_DEPENDENCIES.value,
        "optional": DependencyTypes.OPTIONAL_DEPENDENCIES.value,
    }

    # Typed-declaration packages and their companion checker
    PAIRED_VERSION_FIELD = "flowVersion"
    TYPING_PACKAGE_SCOPE = "@flowtyped"
    TYPING_SCOPE_SEPARATOR = "__"
    TYPE_CHECKER_BIN_PACKAGE = "flow-bin"

    ORDER_MODES = [m.value for m in OrderModes]
    ACCESS_LEVELS = ["public", "restricted"]
