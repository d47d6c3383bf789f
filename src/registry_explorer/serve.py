import argparse
import logging
from typing import Any, Dict, List, Optional

from .app import create_app
from .exceptions import InvalidSettings
from .models import ExplorerSettings
from .utils.misc import add_args_env_variables, setup_arg_parser

LOG = logging.getLogger("registry_explorer")

REGISTRY_ARGS = {
    ("--registry-host",): {
        "help": "Registry URL, e.g. https://registry.example.com. "
        "Can be specified by env variable REGISTRY_HOST.",
        "required": False,
        "type": str,
        "env_variable": "REGISTRY_HOST",
    },
    ("--registry-username",): {
        "help": "Username for the registry. Can be specified by env variable REGISTRY_USERNAME.",
        "required": False,
        "type": str,
        "env_variable": "REGISTRY_USERNAME",
    },
    ("--registry-password",): {
        "help": "Password for the registry. Can be specified by env variable REGISTRY_PASSWORD.",
        "required": False,
        "type": str,
        "env_variable": "REGISTRY_PASSWORD",
    },
    ("--request-timeout",): {
        "help": "Timeout of registry requests in seconds (default 10).",
        "required": False,
        "type": int,
        "env_variable": "REQUEST_TIMEOUT",
    },
    ("--registry-retries",): {
        "help": "How many times to retry failed GET requests to the registry (default 0).",
        "required": False,
        "type": int,
        "env_variable": "REGISTRY_RETRIES",
    },
    ("--registry-insecure",): {
        "help": "Don't verify the registry's TLS certificate.",
        "required": False,
        "type": bool,
    },
    ("--request-threads",): {
        "help": "Maximum number of threads for parallel registry requests (default 10).",
        "required": False,
        "type": int,
        "env_variable": "REQUEST_THREADS",
    },
}

SERVE_ARGS = {
    **REGISTRY_ARGS,
    ("--explorer-username",): {
        "help": "Username for logging into the explorer. "
        "Can be specified by env variable EXPLORER_USERNAME.",
        "required": False,
        "type": str,
        "env_variable": "EXPLORER_USERNAME",
    },
    ("--explorer-password",): {
        "help": "Password for logging into the explorer. "
        "Can be specified by env variable EXPLORER_PASSWORD.",
        "required": False,
        "type": str,
        "env_variable": "EXPLORER_PASSWORD",
    },
    ("--listen-addr",): {
        "help": "Address to listen on (default 0.0.0.0).",
        "required": False,
        "type": str,
        "env_variable": "LISTEN_ADDR",
    },
    ("--listen-port",): {
        "help": "Port to listen on (default 80).",
        "required": False,
        "type": int,
        "env_variable": "LISTEN_PORT",
    },
    ("--static-dir",): {
        "help": "Directory of static files. Packaged files are served when not given.",
        "required": False,
        "type": str,
        "env_variable": "STATIC_DIR",
    },
    ("--page-size",): {
        "help": "Default number of tags on a page (default 15).",
        "required": False,
        "type": int,
        "env_variable": "PAGE_SIZE",
    },
}

REQUIRED_REGISTRY_SETTINGS = ["registry_host", "registry_username", "registry_password"]
REQUIRED_SERVE_SETTINGS = REQUIRED_REGISTRY_SETTINGS + ["explorer_username", "explorer_password"]


def parse_settings(
    arg_definitions: Dict[Any, Any], required: List[str], sysargs: Optional[List[str]] = None
) -> argparse.Namespace:
    """
    Parse command line arguments, fill in environment variables and check required values.

    Args:
        arg_definitions (dict):
            Argument definition.
        required (list):
            Names of arguments which must have a value.
        sysargs (list):
            Command line, the first item being the program name. sys.argv is used if not given.
    Returns (Namespace):
        Parsed arguments.
    Raises:
        InvalidSettings:
            If a required argument has no value.
    """
    parser = setup_arg_parser(arg_definitions)
    if sysargs:
        args = parser.parse_args(sysargs[1:])
    else:
        args = parser.parse_args()  # pragma: no cover
    args = add_args_env_variables(args, arg_definitions)

    for name in required:
        if not getattr(args, name):
            raise InvalidSettings("--{0} must be specified".format(name.replace("_", "-")))
    return args


def settings_from_args(args: argparse.Namespace) -> ExplorerSettings:
    """Create explorer settings out of parsed arguments."""
    values = dict(vars(args))
    values["registry_verify"] = not values.pop("registry_insecure", False)
    return ExplorerSettings.from_mapping(values)


def setup_args() -> argparse.ArgumentParser:
    """Set up argparser without extra parameters, this method is used for auto doc generation."""
    return setup_arg_parser(SERVE_ARGS)


def serve_main(sysargs: Optional[List[str]] = None) -> None:
    """Entrypoint for running the explorer web server."""
    logging.basicConfig(level=logging.INFO)

    args = parse_settings(SERVE_ARGS, REQUIRED_SERVE_SETTINGS, sysargs)
    settings = settings_from_args(args)

    LOG.info("Registry Host: {0}".format(settings.registry_host))
    LOG.info("Registry Username: {0}".format(settings.registry_username))

    app = create_app(settings)
    LOG.info("Listening on {0}:{1}".format(settings.listen_addr, settings.listen_port))
    app.run(host=settings.listen_addr, port=settings.listen_port, threaded=True)
