import re
import textwrap

import pytest

import provisor.config
from provisor.config import load_config
from provisor.options import AuthOptions, EngineOptions
from provisor.utils import FileError, Path, SpecificationError


def _write(tmppath: Path, content: str) -> Path:
    config_path = tmppath / 'provision.yaml'
    config_path.write_text(textwrap.dedent(content))

    return config_path


def test_defaults(tmppath: Path) -> None:
    config = load_config(_write(tmppath, 'host:\n  name: pi-01\n'))

    assert config.host.name == 'pi-01'
    assert config.host.address is None
    assert config.host.user == 'root'
    assert config.host.port == 22
    assert config.docker_port == 2376
    assert config.settle_delay == 2.0
    assert config.options_template_filepath is None
    assert config.engine.to_options() == EngineOptions()
    assert config.auth.to_options() == AuthOptions()
    assert config.swarm.to_options().image == 'swarm:latest'


def test_load(tmppath: Path) -> None:
    config = load_config(
        _write(
            tmppath,
            """
            host:
              name: pi-01
              address: 192.0.2.10
              user: pirate
              key: /keys/id_rsa
              driver: virtualbox

            engine:
              storage-driver: overlay
              labels:
                - rack=b2
              registry-mirror:
                - https://mirror.example.com
              tls-verify: false

            auth:
              ca-cert-path: /certs/ca.pem

            swarm:
              is-swarm: true
              discovery: token://abc

            docker-port: 2377
            settle-delay: 0
            options-template: /templates/docker.j2
            """,
        )
    )

    machine = config.host.to_machine()

    assert machine.name == 'pi-01'
    assert machine.address == '192.0.2.10'
    assert machine.driver_name == 'virtualbox'
    assert config.host.key_path == Path('/keys/id_rsa')

    assert config.engine.to_options() == EngineOptions(
        storage_driver='overlay',
        labels=('rack=b2',),
        registry_mirror=('https://mirror.example.com',),
        tls_verify=False,
    )
    assert config.auth.to_options().ca_cert_path == Path('/certs/ca.pem')
    assert config.auth.to_options().server_key_path is None

    swarm_options = config.swarm.to_options()

    assert swarm_options.is_swarm is True
    assert swarm_options.discovery == 'token://abc'

    assert config.docker_port == 2377
    assert config.settle_delay == 0
    assert config.options_template_filepath == Path('/templates/docker.j2')


def test_home_in_paths(tmppath: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('HOME', '/home/pirate')

    config = load_config(_write(tmppath, 'host:\n  name: pi-01\n  key: ~/.ssh/id_rsa\n'))

    assert config.host.key_path == Path('/home/pirate/.ssh/id_rsa')


@pytest.mark.parametrize(
    'content',
    [
        'host:\n  name: pi-01\n  colour: blue\n',
        'engine:\n  labels: []\n',
        'host:\n  name: pi-01\ndocker-port: many\n',
    ],
    ids=('unknown-key', 'missing-host', 'wrong-type'),
)
def test_invalid(tmppath: Path, content: str) -> None:
    config_path = _write(tmppath, content)

    expected = re.escape(f"Invalid configuration in '{config_path}'.")

    with pytest.raises(SpecificationError, match=expected):
        load_config(config_path)


def test_missing_file(tmppath: Path) -> None:
    with pytest.raises(FileError, match='Failed to read configuration'):
        load_config(tmppath / 'missing.yaml')


def test_config_dir_from_environment(tmppath: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmppath, 'host:\n  name: from-env\n')

    monkeypatch.setenv('PROVISOR_CONFIG_DIR', str(tmppath))

    assert provisor.config.effective_config_dir() == tmppath
    assert load_config().host.name == 'from-env'


def test_default_config_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv('PROVISOR_CONFIG_DIR', raising=False)
    monkeypatch.setenv('HOME', '/home/pirate')

    assert provisor.config.effective_config_dir() == Path('/home/pirate/.config/provisor')
