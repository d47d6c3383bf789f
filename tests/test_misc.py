import logging
import time

import mock
import pytest

from registry_explorer.utils import misc


def test_run_in_parallel_keeps_order():
    def slow_double(value, delay):
        time.sleep(delay)
        return value * 2

    data = [misc.FData(args=[n], kwargs={"delay": 0.05 * (3 - n)}) for n in range(3)]
    results = misc.run_in_parallel(slow_double, data, threads=3)

    assert list(results.items()) == [(0, 0), (1, 2), (2, 4)]


def test_run_in_parallel_empty():
    func = mock.MagicMock()

    assert misc.run_in_parallel(func, [], threads=0) == {}
    func.assert_not_called()


def test_run_in_parallel_reraises():
    def fail_on_two(value):
        if value == 2:
            raise ValueError("bad value {0}".format(value))
        return value

    with pytest.raises(ValueError, match="bad value 2"):
        misc.run_in_parallel(fail_on_two, [misc.FData(args=[n]) for n in range(4)])


def test_call_or_none(caplog):
    assert misc.call_or_none(lambda: 42, "Answering") == 42

    def fail():
        raise KeyError("missing")

    assert misc.call_or_none(fail, "Looking up", (KeyError,)) is None
    assert "Looking up failed, continuing without it" in caplog.text

    with pytest.raises(KeyError):
        misc.call_or_none(fail, "Looking up", (ValueError,))


def test_setup_arg_parser():
    args = {
        ("--name",): {"help": "Name.", "required": True, "type": str},
        ("--count",): {"help": "Count.", "required": False, "type": int},
        ("--insecure",): {"help": "Flag.", "required": False, "type": bool},
    }
    parser = misc.setup_arg_parser(args)

    parsed = parser.parse_args(["--name", "foo", "--count", "3", "--insecure"])
    assert parsed.name == "foo"
    assert parsed.count == 3
    assert parsed.insecure is True

    parsed = parser.parse_args(["--name", "foo"])
    assert parsed.count is None
    assert parsed.insecure is None


@mock.patch.dict("os.environ", {"SOME_NAME": "from-env", "SOME_COUNT": "7"})
def test_add_args_env_variables():
    args = {
        ("--name",): {"help": "Name.", "type": str, "env_variable": "SOME_NAME"},
        ("--count",): {"help": "Count.", "type": int, "env_variable": "SOME_COUNT"},
        ("--other",): {"help": "Other.", "type": str},
    }
    parser = misc.setup_arg_parser(args)

    parsed = misc.add_args_env_variables(parser.parse_args(["--name", "from-cli"]), args)

    assert parsed.name == "from-cli"
    assert parsed.count == "7"
    assert parsed.other is None


def test_log_step(caplog):
    caplog.set_level(logging.INFO)

    @misc.log_step("Do thing")
    def do_thing(fail=False):
        if fail:
            raise RuntimeError("oops")
        return "done"

    assert do_thing() == "done"
    with pytest.raises(RuntimeError):
        do_thing(fail=True)

    events = [r.event["type"] for r in caplog.records if hasattr(r, "event")]
    assert events == ["do-thing-start", "do-thing-end", "do-thing-start", "do-thing-error"]
    assert "Do thing: Failed" in caplog.text
