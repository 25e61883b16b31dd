"""
Provisioning configuration.

Hosts and options of their provisioning are described by a YAML file:

.. code-block:: yaml

    host:
      name: pi-01
      address: 192.168.1.20
      user: pirate
      key: ~/.ssh/id_rsa

    engine:
      labels:
        - rack=b2
      registry-mirror:
        - https://mirror.example.com

    auth:
      ca-cert-path: ~/.docker/machine/certs/ca.pem
      server-cert-path: ~/.docker/machine/machines/pi-01/server.pem
      server-key-path: ~/.docker/machine/machines/pi-01/server-key.pem
"""

import os
from typing import Optional

import provisor.log
import provisor.utils
from provisor.container import MetadataContainer
from provisor.executor import Machine
from provisor.options import DEFAULT_SWARM_IMAGE, AuthOptions, EngineOptions, SwarmOptions
from provisor.provisioners import DEFAULT_DOCKER_PORT, DEFAULT_SETTLE_DELAY
from provisor.utils import Path
from provisor.utils.wait import DEFAULT_WAIT_TICK, DEFAULT_WAIT_TIMEOUT

# Config directory
DEFAULT_CONFIG_DIR = Path('~/.config/provisor')

#: Name of the configuration file searched for in the config directory.
CONFIG_FILENAME = 'provision.yaml'


def effective_config_dir() -> Path:
    """
    Find out what the actual config directory is.

    If ``PROVISOR_CONFIG_DIR`` variable is set, it is used. Otherwise,
    :py:const:`DEFAULT_CONFIG_DIR` is picked.
    """

    if 'PROVISOR_CONFIG_DIR' in os.environ:
        return Path(os.environ['PROVISOR_CONFIG_DIR']).expanduser()

    return DEFAULT_CONFIG_DIR.expanduser()


def _to_path(path: Optional[str]) -> Optional[Path]:
    return Path(path).expanduser() if path is not None else None


class HostConfig(MetadataContainer):
    name: str
    address: Optional[str] = None
    user: str = 'root'
    port: int = 22
    key: Optional[str] = None
    driver: str = 'generic'

    #: Per-command timeout, in seconds.
    timeout: Optional[int] = None

    @property
    def key_path(self) -> Optional[Path]:
        return _to_path(self.key)

    def to_machine(self) -> Machine:
        return Machine(name=self.name, driver_name=self.driver, address=self.address)


class EngineConfig(MetadataContainer):
    storage_driver: Optional[str] = None
    labels: list[str] = []
    insecure_registry: list[str] = []
    registry_mirror: list[str] = []
    arbitrary_flags: list[str] = []
    install_url: str = 'https://get.docker.com'
    tls_verify: bool = True

    def to_options(self) -> EngineOptions:
        return EngineOptions(
            storage_driver=self.storage_driver,
            labels=tuple(self.labels),
            insecure_registry=tuple(self.insecure_registry),
            registry_mirror=tuple(self.registry_mirror),
            arbitrary_flags=tuple(self.arbitrary_flags),
            install_url=self.install_url,
            tls_verify=self.tls_verify,
        )


class AuthConfig(MetadataContainer):
    ca_cert_path: Optional[str] = None
    server_cert_path: Optional[str] = None
    server_key_path: Optional[str] = None

    def to_options(self) -> AuthOptions:
        return AuthOptions(
            ca_cert_path=_to_path(self.ca_cert_path),
            server_cert_path=_to_path(self.server_cert_path),
            server_key_path=_to_path(self.server_key_path),
        )


class SwarmConfig(MetadataContainer):
    is_swarm: bool = False
    master: bool = False
    image: str = DEFAULT_SWARM_IMAGE
    discovery: Optional[str] = None
    strategy: str = 'spread'
    host: str = 'tcp://0.0.0.0:3376'
    arbitrary_flags: list[str] = []

    def to_options(self) -> SwarmOptions:
        return SwarmOptions(
            is_swarm=self.is_swarm,
            master=self.master,
            image=self.image,
            discovery=self.discovery,
            strategy=self.strategy,
            host=self.host,
            arbitrary_flags=tuple(self.arbitrary_flags),
        )


class ProvisionConfig(MetadataContainer):
    """
    Everything needed to provision one host
    """

    host: HostConfig
    engine: EngineConfig = EngineConfig()
    auth: AuthConfig = AuthConfig()
    swarm: SwarmConfig = SwarmConfig()

    docker_port: int = DEFAULT_DOCKER_PORT
    settle_delay: float = DEFAULT_SETTLE_DELAY
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    wait_tick: float = DEFAULT_WAIT_TICK

    #: If set, layout of the daemon options file is loaded from this file.
    options_template: Optional[str] = None

    @property
    def options_template_filepath(self) -> Optional[Path]:
        return _to_path(self.options_template)


def load_config(
    path: Optional[Path] = None,
    logger: Optional[provisor.log.Logger] = None,
) -> ProvisionConfig:
    """
    Load provisioning configuration.

    :param path: configuration file. If not set, ``provision.yaml`` in
        the config directory is used.
    :raises FileError: when the file cannot be read.
    :raises SpecificationError: when the file content is not valid.
    """

    path = path or effective_config_dir() / CONFIG_FILENAME

    if logger is not None:
        logger.debug(f"Load configuration from '{path}'.")

    try:
        content = path.read_text()

    except OSError as error:
        raise provisor.utils.FileError(f"Failed to read configuration '{path}'.") from error

    try:
        return ProvisionConfig.from_yaml(content)

    except provisor.utils.GeneralError as error:
        raise provisor.utils.SpecificationError(f"Invalid configuration in '{path}'.") from error
