from provisor.provisioners import provides_provisioner
from provisor.provisioners.debian import DebianProvisioner
from provisor.utils import Command


@provides_provisioner('ubuntu')
class UbuntuProvisioner(DebianProvisioner):
    os_release_id = 'ubuntu'
    marker_command = Command('test', '-f', '/etc/lsb-release')
