"""
Joining hosts to a swarm cluster.
"""

import abc
import urllib.parse
from typing import TYPE_CHECKING

import provisor.log
import provisor.utils
from provisor.options import AuthOptions, SwarmOptions
from provisor.utils import Command

if TYPE_CHECKING:
    from provisor.provisioners import Provisioner


#: Port the swarm manager listens on unless ``host`` says otherwise.
DEFAULT_SWARM_PORT = 3376

#: Directory with TLS material, shared with the manager container.
DOCKER_DIR = '/etc/docker'


class SwarmConfigurator(abc.ABC):
    @abc.abstractmethod
    def configure(
        self,
        provisioner: 'Provisioner',
        swarm_options: SwarmOptions,
        auth_options: AuthOptions,
    ) -> None:
        """
        Configure swarm membership of the host
        """

        raise NotImplementedError


class ContainerSwarmConfigurator(SwarmConfigurator):
    """
    Starts swarm manager and agent containers on the host.

    Nothing happens unless ``is_swarm`` is set. The manager container runs
    only on the master host, every host runs the agent.
    """

    def __init__(self, logger: provisor.log.Logger) -> None:
        self._logger = logger

    def _manager_command(self, swarm_options: SwarmOptions, auth_options: AuthOptions) -> Command:
        port = urllib.parse.urlparse(swarm_options.host).port or DEFAULT_SWARM_PORT

        return Command(
            'sudo',
            'docker',
            'run',
            '-d',
            '--restart=always',
            '-p',
            f'{port}:{port}',
            '-v',
            f'{DOCKER_DIR}:{DOCKER_DIR}',
            '--name',
            'swarm-agent-master',
            swarm_options.image,
            'manage',
            '--tlsverify',
            f'--tlscacert={auth_options.ca_cert_remote_path}',
            f'--tlscert={auth_options.server_cert_remote_path}',
            f'--tlskey={auth_options.server_key_remote_path}',
            '-H',
            swarm_options.host,
            '--strategy',
            swarm_options.strategy,
            *(f'--{flag}' for flag in swarm_options.arbitrary_flags),
            swarm_options.discovery or '',
        )

    def _agent_command(self, provisioner: 'Provisioner', swarm_options: SwarmOptions) -> Command:
        return Command(
            'sudo',
            'docker',
            'run',
            '-d',
            '--restart=always',
            '--name',
            'swarm-agent',
            swarm_options.image,
            'join',
            '--advertise',
            f'{provisioner.machine.address}:{provisioner.docker_port}',
            swarm_options.discovery or '',
        )

    def configure(
        self,
        provisioner: 'Provisioner',
        swarm_options: SwarmOptions,
        auth_options: AuthOptions,
    ) -> None:
        if not swarm_options.is_swarm:
            self._logger.debug('Swarm not requested, skipping.')
            return

        if not swarm_options.discovery:
            raise provisor.utils.ProvisionError('Swarm discovery URL is required to join a swarm.')

        if provisioner.machine.address is None:
            raise provisor.utils.ProvisionError(
                f"Machine '{provisioner.machine.name}' has no address to advertise to the swarm."
            )

        if swarm_options.master:
            self._logger.debug(f"Start swarm manager from image '{swarm_options.image}'.")

            provisioner.executor.execute(self._manager_command(swarm_options, auth_options))

        self._logger.debug(f"Start swarm agent from image '{swarm_options.image}'.")

        provisioner.executor.execute(self._agent_command(provisioner, swarm_options))
