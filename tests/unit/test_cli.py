import textwrap

import pytest

import provisor.cli
import provisor.config
from provisor.executor.local import LocalExecutor
from provisor.executor.ssh import SshExecutor
from provisor.log import Logger
from provisor.utils import FileError, NoCompatibleProvisionerError, Path

from .. import CliRunner
from ._fake_executor import FakeExecutor, hypriot_host


@pytest.fixture(name='config_path')
def fixture_config_path(tmppath: Path) -> Path:
    for filename in ('ca.pem', 'server.pem', 'server-key.pem'):
        (tmppath / filename).write_text(f'{filename} content')

    config_path = tmppath / 'provision.yaml'
    config_path.write_text(
        textwrap.dedent(f"""
        host:
          name: pi-01
          address: 192.0.2.10

        auth:
          ca-cert-path: {tmppath / 'ca.pem'}
          server-cert-path: {tmppath / 'server.pem'}
          server-key-path: {tmppath / 'server-key.pem'}

        settle-delay: 0
        wait-tick: 0.01
        """)
    )

    return config_path


@pytest.fixture(name='executor')
def fixture_executor(monkeypatch: pytest.MonkeyPatch, root_logger: Logger) -> FakeExecutor:
    executor = hypriot_host(root_logger)

    monkeypatch.setattr(provisor.cli, 'create_executor', lambda config, logger: executor)

    return executor


def test_variants() -> None:
    result = CliRunner().invoke(provisor.cli.main, ['variants'])

    assert result.exit_code == 0
    assert result.output.splitlines() == [
        'hypriot    raspbian   apt/sysvinit',
        'debian     debian     apt/systemd',
        'ubuntu     ubuntu     apt/systemd',
        'fedora     fedora     dnf/systemd',
        'centos     centos     yum/systemd',
    ]


def test_detect(config_path: Path, executor: FakeExecutor) -> None:
    result = CliRunner().invoke(provisor.cli.main, ['--config', str(config_path), 'detect'])

    assert result.exit_code == 0
    assert 'hypriot' in result.output.splitlines()


def test_options(config_path: Path, executor: FakeExecutor) -> None:
    result = CliRunner().invoke(provisor.cli.main, ['-c', str(config_path), 'options'])

    assert result.exit_code == 0
    assert (
        "DOCKER_OPTS='-H tcp://0.0.0.0:2376 -H unix:///var/run/docker.sock"
        ' --storage-driver overlay --tlsverify --tlscacert /etc/docker/ca.pem'
        ' --tlscert /etc/docker/server.pem --tlskey /etc/docker/server-key.pem'
        " --label provider=generic'"
    ) in result.output
    assert not executor.ran(r'tee')


def test_provision(config_path: Path, executor: FakeExecutor) -> None:
    result = CliRunner().invoke(provisor.cli.main, ['-c', str(config_path), 'provision'])

    assert result.exit_code == 0, result.output
    assert executor.ran(r'^sudo service docker restart$')
    assert executor.ran(r'server-key\.pem content')


def test_provision_with_incompatible_provisioner(
    config_path: Path, executor: FakeExecutor
) -> None:
    result = CliRunner().invoke(
        provisor.cli.main, ['-c', str(config_path), 'provision', '--provisioner', 'debian']
    )

    assert result.exit_code == 1
    assert isinstance(result.exception, NoCompatibleProvisionerError)
    assert not executor.ran(r'apt-get')


def test_missing_config(tmppath: Path) -> None:
    result = CliRunner().invoke(
        provisor.cli.main, ['-c', str(tmppath / 'missing.yaml'), 'detect']
    )

    assert result.exit_code == 1
    assert isinstance(result.exception, FileError)


def test_local_host_executor(root_logger: Logger, tmppath: Path) -> None:
    config_path = tmppath / 'provision.yaml'
    config_path.write_text('host:\n  name: localhost\n')

    config = provisor.config.load_config(config_path)

    executor = provisor.cli.create_executor(config, root_logger)

    assert isinstance(executor, LocalExecutor)
    assert executor.host == 'localhost'


def test_remote_host_executor(root_logger: Logger, tmppath: Path) -> None:
    config_path = tmppath / 'provision.yaml'
    config_path.write_text(
        'host:\n  name: pi-01\n  address: 192.0.2.10\n  user: pirate\n  port: 2222\n'
    )

    executor = provisor.cli.create_executor(provisor.config.load_config(config_path), root_logger)

    assert isinstance(executor, SshExecutor)
    assert executor.user == 'pirate'
    assert executor.port == 2222


def test_log_file(config_path: Path, executor: FakeExecutor, tmppath: Path) -> None:
    log_path = tmppath / 'provisor.log'

    result = CliRunner().invoke(
        provisor.cli.main, ['--log-file', str(log_path), '-c', str(config_path), 'detect']
    )

    assert result.exit_code == 0
    assert log_path.exists()
