import pathlib

import _pytest.logging
import pytest

import provisor.plugins
from provisor.log import Logger
from provisor.utils import Path

from ._fake_executor import FakeExecutor, debian_host, fedora_host, hypriot_host


@pytest.fixture(name='root_logger')
def fixture_root_logger(caplog: _pytest.logging.LogCaptureFixture) -> Logger:
    return Logger.create(verbose=0, debug=0, quiet=False)


@pytest.fixture(autouse=True)
def _explored_plugins(root_logger: Logger) -> None:
    provisor.plugins.explore(root_logger)


@pytest.fixture
def tmppath(tmp_path: pathlib.Path) -> Path:
    return Path(str(tmp_path))


@pytest.fixture
def hypriot_executor(root_logger: Logger) -> FakeExecutor:
    return hypriot_host(root_logger)


@pytest.fixture
def debian_executor(root_logger: Logger) -> FakeExecutor:
    return debian_host(root_logger)


@pytest.fixture
def fedora_executor(root_logger: Logger) -> FakeExecutor:
    return fedora_host(root_logger)
