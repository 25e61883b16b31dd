"""
Rendering of the container engine daemon options.

Rendering happens in two stages: first the daemon flags are rendered
into a single line, then the line is placed into the options file in the
layout the init system of the host understands.
"""

from typing import Optional

from provisor.options import AuthOptions, EngineOptions
from provisor.utils import Path, TemplateRenderError
from provisor.utils.templates import render_template, render_template_file

#: Storage driver used when neither the options nor the provisioner name one.
DEFAULT_STORAGE_DRIVER = 'overlay2'

#: Local socket the daemon always listens on.
DOCKER_SOCKET = 'unix:///var/run/docker.sock'

# One flag and its value per line, lines are joined with spaces after
# rendering.
ENGINE_FLAGS_TEMPLATE = """
-H tcp://0.0.0.0:{{ PORT }}
-H {{ SOCKET }}
--storage-driver {{ STORAGE_DRIVER }}
{% if ENGINE.tls_verify %}
--tlsverify
--tlscacert {{ AUTH.ca_cert_remote_path }}
--tlscert {{ AUTH.server_cert_remote_path }}
--tlskey {{ AUTH.server_key_remote_path }}
{% endif %}
{% for label in ENGINE.labels %}
--label {{ label }}
{% endfor %}
{% for registry in ENGINE.insecure_registry %}
--insecure-registry {{ registry }}
{% endfor %}
{% for mirror in ENGINE.registry_mirror %}
--registry-mirror {{ mirror }}
{% endfor %}
{% for flag in ENGINE.arbitrary_flags %}
--{{ flag }}
{% endfor %}
"""

#: Defaults file sourced by SysV init scripts, e.g. ``/etc/default/docker``.
SYSVINIT_OPTIONS_TEMPLATE = """
DOCKER_OPTS='{{ FLAGS }}'
"""

#: Drop-in overriding the command line of the systemd unit.
SYSTEMD_OPTIONS_TEMPLATE = """
[Service]
ExecStart=
ExecStart=/usr/bin/dockerd {{ FLAGS }}
MountFlags=slave
LimitNOFILE=1048576
LimitNPROC=1048576
LimitCORE=infinity
"""


def render_engine_options(
    port: int,
    auth_options: AuthOptions,
    engine_options: EngineOptions,
    default_storage_driver: str = DEFAULT_STORAGE_DRIVER,
    template: str = ENGINE_FLAGS_TEMPLATE,
) -> str:
    """
    Render daemon flags as a single line.

    Flags come in a fixed order: listening sockets, storage driver, TLS
    flags, then labels, insecure registries, registry mirrors and
    arbitrary flags, each in the order they were given. The same input
    always produces the same output.

    :param port: TCP port the daemon should listen on.
    :param auth_options: remote paths of TLS material.
    :param engine_options: daemon options.
    :param default_storage_driver: used when ``engine_options`` do not set
        any storage driver.
    :param template: template rendering one flag per line.
    :raises TemplateRenderError: when TLS verification is requested but
        remote paths of TLS material are not known, or when the template
        cannot be rendered.
    """

    if engine_options.tls_verify and None in (
        auth_options.ca_cert_remote_path,
        auth_options.server_cert_remote_path,
        auth_options.server_key_remote_path,
    ):
        raise TemplateRenderError(
            'Cannot render TLS flags, remote paths of certificates are not set.'
        )

    rendered = render_template(
        template,
        PORT=port,
        SOCKET=DOCKER_SOCKET,
        STORAGE_DRIVER=engine_options.storage_driver or default_storage_driver,
        ENGINE=engine_options,
        AUTH=auth_options,
    )

    return ' '.join(line.strip() for line in rendered.splitlines() if line.strip())


def render_options_file(
    flags: str,
    template: str = SYSVINIT_OPTIONS_TEMPLATE,
    template_filepath: Optional[Path] = None,
) -> str:
    """
    Render content of the daemon options file.

    :param flags: daemon flags rendered by :py:func:`render_engine_options`.
    :param template: layout of the file.
    :param template_filepath: if set, the layout is loaded from this file
        instead of ``template``.
    """

    if template_filepath is not None:
        return render_template_file(template_filepath, FLAGS=flags) + '\n'

    return render_template(template, FLAGS=flags) + '\n'
