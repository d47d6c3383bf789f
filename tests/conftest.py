import pytest

from pubtools.pluggy import pm

from registry_explorer.models import ExplorerSettings

from .utils.misc import REGISTRY_URL


@pytest.fixture
def hookspy():
    # Yields a list which receives a (name, kwargs) tuple
    # every time a pubtools hook is invoked.
    hooks = []

    def record_hook(hook_name, _hook_impls, kwargs):
        hooks.append((hook_name, kwargs))

    def do_nothing(*args, **kwargs):
        pass

    undo = pm.add_hookcall_monitoring(before=record_hook, after=do_nothing)
    yield hooks
    undo()


@pytest.fixture
def settings():
    return ExplorerSettings(
        registry_host=REGISTRY_URL,
        registry_username="reg-user",
        registry_password="reg-pass",
        explorer_username="admin",
        explorer_password="secret",
    )
