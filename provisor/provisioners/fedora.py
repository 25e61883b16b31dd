"""
Fedora and CentOS hosts, with the engine from the upstream repository.
"""

from typing import Optional

from provisor.engine import SYSTEMD_OPTIONS_TEMPLATE
from provisor.provisioners import Provisioner, provides_provisioner
from provisor.provisioners.debian import SYSTEMD_DROP_IN
from provisor.utils import Command, Path, ShellScript

REPOSITORY_FILE = Path('/etc/yum.repos.d/docker-ce.repo')


@provides_provisioner('fedora')
class FedoraProvisioner(Provisioner):
    os_release_id = 'fedora'
    marker_command = Command('test', '-f', '/etc/fedora-release')

    options_file = SYSTEMD_DROP_IN
    options_template = SYSTEMD_OPTIONS_TEMPLATE

    transport_packages = ('dnf-plugins-core',)
    package_aliases = {'docker': 'docker-ce'}  # noqa: RUF012

    package_manager_name = 'dnf'
    service_manager_name = 'systemd'

    #: Command adding a repository file given by its URL.
    add_repository_command = Command('sudo', 'dnf', 'config-manager', '--add-repo')

    @property
    def repository_url(self) -> str:
        return f'https://download.docker.com/linux/{self.os_release_id}/docker-ce.repo'

    def repository_script(self) -> Optional[ShellScript]:
        add_repository = (self.add_repository_command + [self.repository_url]).to_script()

        return ShellScript(f'[ -f {REPOSITORY_FILE} ]') | add_repository
