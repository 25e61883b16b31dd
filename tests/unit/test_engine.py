import pytest

from provisor.engine import (
    SYSTEMD_OPTIONS_TEMPLATE,
    render_engine_options,
    render_options_file,
)
from provisor.options import AuthOptions, EngineOptions
from provisor.utils import Path, TemplateRenderError

AUTH_OPTIONS = AuthOptions(
    ca_cert_remote_path=Path('/etc/docker/ca.pem'),
    server_cert_remote_path=Path('/etc/docker/server.pem'),
    server_key_remote_path=Path('/etc/docker/server-key.pem'),
)

TLS_FLAGS = (
    '--tlsverify --tlscacert /etc/docker/ca.pem --tlscert /etc/docker/server.pem'
    ' --tlskey /etc/docker/server-key.pem'
)


def test_minimal() -> None:
    assert render_engine_options(2376, AUTH_OPTIONS, EngineOptions(storage_driver='overlay')) == (
        '-H tcp://0.0.0.0:2376 -H unix:///var/run/docker.sock --storage-driver overlay '
        + TLS_FLAGS
    )


def test_default_storage_driver() -> None:
    flags = render_engine_options(
        2376, AUTH_OPTIONS, EngineOptions(), default_storage_driver='overlay'
    )

    assert '--storage-driver overlay ' in flags


def test_storage_driver_wins_over_default() -> None:
    flags = render_engine_options(
        2376, AUTH_OPTIONS, EngineOptions(storage_driver='btrfs'), default_storage_driver='overlay'
    )

    assert '--storage-driver btrfs ' in flags
    assert 'overlay' not in flags


def test_list_options_order_and_count() -> None:
    engine_options = EngineOptions(
        storage_driver='overlay',
        labels=('provider=generic', 'rack=b2'),
        insecure_registry=('registry.local:5000',),
        registry_mirror=('https://mirror-1.example.com', 'https://mirror-2.example.com'),
        arbitrary_flags=('debug', 'log-level=warn'),
    )

    flags = render_engine_options(2376, AUTH_OPTIONS, engine_options)

    assert flags.endswith(
        ' --label provider=generic --label rack=b2'
        ' --insecure-registry registry.local:5000'
        ' --registry-mirror https://mirror-1.example.com'
        ' --registry-mirror https://mirror-2.example.com'
        ' --debug --log-level=warn'
    )
    assert flags.count('--label ') == 2
    assert flags.count('--insecure-registry ') == 1
    assert flags.count('--registry-mirror ') == 2


def test_deterministic() -> None:
    engine_options = EngineOptions(labels=('a=1', 'b=2'), arbitrary_flags=('debug',))

    assert render_engine_options(2376, AUTH_OPTIONS, engine_options) == render_engine_options(
        2376, AUTH_OPTIONS, engine_options
    )


def test_without_tls() -> None:
    flags = render_engine_options(
        2375, AuthOptions(), EngineOptions(storage_driver='overlay', tls_verify=False)
    )

    assert flags == (
        '-H tcp://0.0.0.0:2375 -H unix:///var/run/docker.sock --storage-driver overlay'
    )


def test_tls_without_remote_paths() -> None:
    with pytest.raises(TemplateRenderError, match='remote paths of certificates are not set'):
        render_engine_options(2376, AuthOptions(), EngineOptions())


def test_broken_template() -> None:
    with pytest.raises(TemplateRenderError):
        render_engine_options(2376, AUTH_OPTIONS, EngineOptions(), template='{{ NOPE }}')


def test_sysvinit_layout() -> None:
    assert render_options_file('-H unix:///var/run/docker.sock') == (
        "DOCKER_OPTS='-H unix:///var/run/docker.sock'\n"
    )


def test_systemd_layout() -> None:
    content = render_options_file('--debug', template=SYSTEMD_OPTIONS_TEMPLATE)

    assert content.startswith('[Service]\nExecStart=\nExecStart=/usr/bin/dockerd --debug\n')


def test_layout_from_file(tmppath: Path) -> None:
    template_filepath = tmppath / 'docker.j2'
    template_filepath.write_text('OPTIONS="{{ FLAGS }}"')

    assert render_options_file('--debug', template_filepath=template_filepath) == (
        'OPTIONS="--debug"\n'
    )


def test_with_label() -> None:
    engine_options = EngineOptions(labels=('rack=b2',))

    updated = engine_options.with_label('provider=generic')

    assert updated.labels == ('rack=b2', 'provider=generic')
    assert engine_options.labels == ('rack=b2',)
    assert updated.with_label('provider=generic') is updated
