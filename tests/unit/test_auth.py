import pytest

from provisor.auth import RemoteAuthConfigurator
from provisor.log import Logger
from provisor.options import AuthOptions, EngineOptions, ProvisionState
from provisor.provisioners.hypriot import HypriotProvisioner
from provisor.utils import FileError, Path, ProvisionError

from ._fake_executor import FakeExecutor


@pytest.fixture(name='provisioner')
def fixture_provisioner(hypriot_executor: FakeExecutor, root_logger: Logger) -> HypriotProvisioner:
    return HypriotProvisioner(
        executor=hypriot_executor, settle_delay=0, wait_tick=0.01, logger=root_logger
    )


def test_upload_certificates(
    provisioner: HypriotProvisioner,
    hypriot_executor: FakeExecutor,
    tmppath: Path,
    root_logger: Logger,
) -> None:
    for filename in ('ca.pem', 'server.pem', 'server-key.pem'):
        (tmppath / filename).write_text(f'{filename} content')

    state = provisioner.planned_state(
        auth_options=AuthOptions(
            ca_cert_path=tmppath / 'ca.pem',
            server_cert_path=tmppath / 'server.pem',
            server_key_path=tmppath / 'server-key.pem',
        )
    )

    RemoteAuthConfigurator(root_logger).configure(provisioner, state)

    assert hypriot_executor.commands[:3] == [
        "printf '%s' 'ca.pem content' | sudo tee /etc/docker/ca.pem > /dev/null",
        "printf '%s' 'server.pem content' | sudo tee /etc/docker/server.pem > /dev/null",
        "printf '%s' 'server-key.pem content' | sudo tee /etc/docker/server-key.pem > /dev/null"
        ' && sudo chmod 0600 /etc/docker/server-key.pem',
    ]
    assert hypriot_executor.commands[-2:] == [
        'sudo service docker restart',
        'sudo docker version',
    ]


def test_without_tls(
    provisioner: HypriotProvisioner, hypriot_executor: FakeExecutor, root_logger: Logger
) -> None:
    state = provisioner.planned_state(engine_options=EngineOptions(tls_verify=False))

    RemoteAuthConfigurator(root_logger).configure(provisioner, state)

    assert not hypriot_executor.ran(r'\.pem')
    assert hypriot_executor.ran(r'/etc/default/docker')


def test_certificate_not_set(
    provisioner: HypriotProvisioner, hypriot_executor: FakeExecutor, root_logger: Logger
) -> None:
    with pytest.raises(ProvisionError, match='TLS verification is enabled but CA certificate'):
        RemoteAuthConfigurator(root_logger).configure(provisioner, provisioner.planned_state())

    assert hypriot_executor.commands == []


def test_certificate_missing(
    provisioner: HypriotProvisioner, tmppath: Path, root_logger: Logger
) -> None:
    state = provisioner.planned_state(
        auth_options=AuthOptions(
            ca_cert_path=tmppath / 'ca.pem',
            server_cert_path=tmppath / 'server.pem',
            server_key_path=tmppath / 'server-key.pem',
        )
    )

    with pytest.raises(FileError, match="Failed to read CA certificate '.*/ca.pem'"):
        RemoteAuthConfigurator(root_logger).configure(provisioner, state)


def test_remote_path_not_set(
    provisioner: HypriotProvisioner,
    hypriot_executor: FakeExecutor,
    tmppath: Path,
    root_logger: Logger,
) -> None:
    (tmppath / 'ca.pem').write_text('ca.pem content')

    state = ProvisionState(auth_options=AuthOptions(ca_cert_path=tmppath / 'ca.pem'))

    with pytest.raises(ProvisionError, match='Remote path of CA certificate is not set.'):
        RemoteAuthConfigurator(root_logger).configure(provisioner, state)

    assert hypriot_executor.commands == []
