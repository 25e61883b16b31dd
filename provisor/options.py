"""
Values describing what to provision.

All containers are frozen: a provisioning step never changes the options
it was given, it produces new values with :py:func:`dataclasses.replace`
instead.
"""

import dataclasses
from typing import Optional

from provisor.container import container, simple_field
from provisor.utils import Path

#: The swarm image used unless a provisioner prefers its own build.
DEFAULT_SWARM_IMAGE = 'swarm:latest'


@container(frozen=True)
class EngineOptions:
    """
    Options of the container engine daemon
    """

    #: Storage driver of the daemon. If not set, the default of the
    #: provisioner is used.
    storage_driver: Optional[str] = None

    labels: tuple[str, ...] = ()
    insecure_registry: tuple[str, ...] = ()
    registry_mirror: tuple[str, ...] = ()

    #: Additional daemon flags, without the leading ``--``.
    arbitrary_flags: tuple[str, ...] = ()

    install_url: str = 'https://get.docker.com'
    tls_verify: bool = True

    def with_label(self, label: str) -> 'EngineOptions':
        """
        Add a label unless it is already present
        """

        if label in self.labels:
            return self

        return dataclasses.replace(self, labels=(*self.labels, label))


@container(frozen=True)
class AuthOptions:
    """
    Where to find TLS material, locally and on the host
    """

    ca_cert_path: Optional[Path] = None
    server_cert_path: Optional[Path] = None
    server_key_path: Optional[Path] = None

    ca_cert_remote_path: Optional[Path] = None
    server_cert_remote_path: Optional[Path] = None
    server_key_remote_path: Optional[Path] = None


@container(frozen=True)
class SwarmOptions:
    is_swarm: bool = False
    master: bool = False
    image: str = DEFAULT_SWARM_IMAGE
    discovery: Optional[str] = None
    strategy: str = 'spread'
    host: str = 'tcp://0.0.0.0:3376'
    arbitrary_flags: tuple[str, ...] = ()


@container(frozen=True)
class DockerOptions:
    """
    Rendered daemon options and the file they belong to
    """

    path: Path
    content: str


@container(frozen=True)
class ProvisionState:
    """
    The state threaded through provisioning steps.

    Every step receives the state produced by the previous one and returns
    the state for the next one.
    """

    engine_options: EngineOptions = simple_field(default_factory=EngineOptions)
    auth_options: AuthOptions = simple_field(default_factory=AuthOptions)
    swarm_options: SwarmOptions = simple_field(default_factory=SwarmOptions)

    #: Packages waiting for installation, in order.
    packages: tuple[str, ...] = ()

    def evolve(self, **changes: object) -> 'ProvisionState':
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]
