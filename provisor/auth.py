"""
Installation of TLS material and daemon options on the host.
"""

import abc
from typing import TYPE_CHECKING, Optional

import provisor.log
import provisor.utils
from provisor.options import ProvisionState
from provisor.service_managers import ServiceAction
from provisor.utils import Path

if TYPE_CHECKING:
    from provisor.provisioners import Provisioner


#: Mode of the private key once it lands on the host.
SERVER_KEY_MODE = '0600'


class AuthConfigurator(abc.ABC):
    """
    Prepares the daemon on a host for authenticated access
    """

    @abc.abstractmethod
    def configure(self, provisioner: 'Provisioner', state: ProvisionState) -> None:
        """
        Configure authentication of the daemon.

        :param provisioner: provisioner of the host.
        :param state: provisioning state, with remote paths of TLS material
            already resolved.
        """

        raise NotImplementedError


class RemoteAuthConfigurator(AuthConfigurator):
    """
    Uploads existing certificates and restarts the daemon with new options.

    Certificates are expected to exist locally, nothing is generated.
    """

    def __init__(self, logger: provisor.log.Logger) -> None:
        self._logger = logger

    def _read(self, path: Optional[Path], description: str) -> str:
        if path is None:
            raise provisor.utils.ProvisionError(
                f'TLS verification is enabled but {description} is not set.'
            )

        try:
            return path.read_text()

        except OSError as exc:
            raise provisor.utils.FileError(f"Failed to read {description} '{path}'.") from exc

    def configure(self, provisioner: 'Provisioner', state: ProvisionState) -> None:
        auth = state.auth_options

        if state.engine_options.tls_verify:
            for local_path, remote_path, description, mode in (
                (auth.ca_cert_path, auth.ca_cert_remote_path, 'CA certificate', None),
                (auth.server_cert_path, auth.server_cert_remote_path, 'server certificate', None),
                (auth.server_key_path, auth.server_key_remote_path, 'server key', SERVER_KEY_MODE),
            ):
                if remote_path is None:
                    raise provisor.utils.ProvisionError(
                        f'Remote path of {description} is not set.'
                    )

                self._logger.debug(f"Upload {description} to '{remote_path}'.")

                provisioner.executor.write_file(
                    remote_path, self._read(local_path, description), mode=mode
                )

        docker_options = provisioner.generate_docker_options(provisioner.docker_port, state)

        self._logger.debug(f"Write daemon options to '{docker_options.path}'.")

        provisioner.write_docker_options(docker_options)

        provisioner.service(provisioner.service_name, ServiceAction.RESTART)
        provisioner.wait_for_daemon()
