"""
Raspberry Pi hosts running HypriotOS.

HypriotOS is Raspbian underneath, it identifies itself by the
``/etc/hypriot_release`` file. The engine comes from the Hypriot package
repository as ``docker-hypriot``.
"""

from typing import Optional

from provisor.provisioners import Provisioner, provides_provisioner
from provisor.utils import Command, Path, ShellScript

HYPRIOT_LIST = Path('/etc/apt/sources.list.d/hypriot.list')

HYPRIOT_REPOSITORY = 'deb https://packagecloud.io/Hypriot/Schatzkiste/debian/ wheezy main'

HYPRIOT_REPOSITORY_KEY_URL = 'https://packagecloud.io/gpg.key'

#: Boot configuration of Raspberry Pi images carrying the hostname.
OCCIDENTALIS_CONFIG = Path('/boot/occidentalis.txt')


@provides_provisioner('hypriot')
class HypriotProvisioner(Provisioner):
    os_release_id = 'raspbian'
    marker_command = Command('cat', '/etc/hypriot_release')

    options_file = Path('/etc/default/docker')
    options_dir = Path('/etc/docker')

    transport_packages = ('apt-transport-https',)
    package_aliases = {'docker': 'docker-hypriot'}  # noqa: RUF012

    storage_driver = 'overlay'
    swarm_image = 'hypriot/rpi-swarm:latest'

    package_manager_name = 'apt'
    service_manager_name = 'sysvinit'

    def set_variant_hostname(self, hostname: str) -> None:
        # Skipped silently on images without the file.
        self.execute(
            ShellScript(
                f'if [ -f {OCCIDENTALIS_CONFIG} ]; then'
                f" sudo sed -i 's/^hostname.*=.*/hostname={hostname}/g' {OCCIDENTALIS_CONFIG};"
                f' fi'
            )
        )

    def repository_script(self) -> Optional[ShellScript]:
        # Replaces the list when it points to the retired repository.
        return ShellScript(
            f'if [ ! -f {HYPRIOT_LIST} ] || grep -q repository.hypriot.com {HYPRIOT_LIST}; then'
            f' (curl {HYPRIOT_REPOSITORY_KEY_URL} | sudo apt-key add -);'
            f" echo '{HYPRIOT_REPOSITORY}' | sudo tee {HYPRIOT_LIST};"
            f' fi'
        )
