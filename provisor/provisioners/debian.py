from provisor.engine import SYSTEMD_OPTIONS_TEMPLATE
from provisor.provisioners import Provisioner, provides_provisioner
from provisor.utils import Command, Path

#: Drop-in overriding the command line of ``docker.service``.
SYSTEMD_DROP_IN = Path('/etc/systemd/system/docker.service.d/10-provisor.conf')


@provides_provisioner('debian')
class DebianProvisioner(Provisioner):
    """
    Debian hosts, with the engine packaged by the distribution
    """

    os_release_id = 'debian'
    marker_command = Command('test', '-f', '/etc/debian_version')

    options_file = SYSTEMD_DROP_IN
    options_template = SYSTEMD_OPTIONS_TEMPLATE

    transport_packages = ('apt-transport-https', 'ca-certificates')
    package_aliases = {'docker': 'docker.io'}  # noqa: RUF012

    package_manager_name = 'apt'
    service_manager_name = 'systemd'
