from __future__ import annotations

import argparse
from collections.abc import Iterable
from dataclasses import dataclass, field
import functools
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, cast

from concurrent import futures
from concurrent.futures.thread import ThreadPoolExecutor

LOG = logging.getLogger("registry_explorer")

T = TypeVar("T")


@dataclass
class FData:
    """Dataclass for holding data for a function execution.

    Args:
        args (Iterable[Any]): Arguments for the function.
        kwargs (Dict[str, Any]): Keyword arguments for the function.
    """

    args: Iterable[Any]
    kwargs: Dict[str, Any] = field(default_factory=dict)


def run_in_parallel(func: Callable[..., Any], data: List[Any], threads: int = 10) -> Dict[Any, Any]:
    """Run method on data in parallel.

    The first failure is re-raised once it's noticed, results of the other calls are dropped.

    Args:
        func (function): Function to run on data
        data (list): List of FData which are used as arguments for the function
        threads (int): Maximum number of worker threads
    Returns:
        dict: Results keyed by the index of their data entry, in the same order as data.
    """
    if not data:
        return {}

    results = {}
    with ThreadPoolExecutor(max_workers=max(threads, 1)) as executor:
        future_results = {
            executor.submit(func, *data_entry.args, **data_entry.kwargs): n
            for n, data_entry in enumerate(data)
        }
        for future in futures.as_completed(future_results):
            if future.exception() is not None:
                raise cast(BaseException, future.exception())
            results[future_results[future]] = future.result()
    return dict(sorted(results.items(), key=lambda kv: kv[0]))


def call_or_none(
    function: Callable[[], T],
    message: str,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Optional[T]:
    """
    Run the specified function and turn its failure into a missing result.

    Args:
        function (callable):
            Function to run. It must be able to run with 0 parameters.
        message (str):
            Message describing the action performed by the function, e.g. "get creation time".
        exceptions (tuple):
            Exception types which are turned into None. Others propagate.
    Returns:
        Result of the function or None if it failed.
    """
    try:
        return function()
    except exceptions as e:
        LOG.warning("%s failed, continuing without it: %s", message, e)
        return None


def setup_arg_parser(args: Dict[Any, Any]) -> argparse.ArgumentParser:
    """
    Set up ArgumentParser with the provided arguments.

    Args:
        args (dict)
            Dictionary of argument aliases and options to be consumed by ArgumentParser.
    Returns:
        (ArgumentParser) Configured instance of ArgumentParser.
    """
    parser = argparse.ArgumentParser()
    arg_groups: Dict[Any, Any] = {}
    for aliases, arg_data in args.items():
        holder = parser
        if "group" in arg_data:
            arg_groups.setdefault(arg_data["group"], parser.add_argument_group(arg_data["group"]))
            holder = arg_groups[arg_data["group"]]
        action = arg_data.get("action")
        if not action and arg_data["type"] == bool:
            action = "store_true"
        kwargs = {
            "help": arg_data.get("help"),
            "required": arg_data.get("required", False),
            "default": arg_data.get("default"),
        }
        if action:
            kwargs["action"] = action
        else:
            kwargs["type"] = arg_data.get("type", "str")
            kwargs["nargs"] = arg_data.get("count")

        holder.add_argument(*aliases, **kwargs)

    return parser


def add_args_env_variables(
    parsed_args: argparse.Namespace, args: Dict[Any, Any]
) -> argparse.Namespace:
    """
    Add argument values from environment variables.

    Values given on the command line take precedence.

    Args:
        parsed_args ():
            Parsed arguments object.
        args (dict):
            Argument definition.
    Returns:
        Modified parsed arguments object.
    """
    for aliases, arg_data in args.items():
        named_alias = [x.lstrip("-").replace("-", "_") for x in aliases if x.startswith("--")][0]
        if arg_data.get("env_variable"):
            if getattr(parsed_args, named_alias) is None and os.environ.get(
                arg_data["env_variable"]
            ):
                setattr(parsed_args, named_alias, os.environ.get(arg_data["env_variable"]))
    return parsed_args


def task_status(event: str) -> Dict[str, Dict[str, str]]:
    """Helper function. Expand as necessary."""  # noqa: D401
    return dict(event={"type": event})


def log_step(step_name: str) -> Callable[[Any], Any]:
    """
    Log status for methods which constitute an entire task step.

    Args:
        step_name (str):
            Name of the task step, e.g., "Delete image tags".
    """
    event_name = step_name.lower().replace(" ", "-")

    def decorate(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def fn_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                LOG.info("%s: Started", step_name, extra=task_status("%s-start" % event_name))
                ret = fn(*args, **kwargs)
                LOG.info("%s: Finished", step_name, extra=task_status("%s-end" % event_name))
                return ret
            except Exception:
                LOG.error("%s: Failed", step_name, extra=task_status("%s-error" % event_name))
                raise

        return fn_wrapper

    return decorate
