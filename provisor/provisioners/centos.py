from provisor.provisioners import provides_provisioner
from provisor.provisioners.fedora import FedoraProvisioner
from provisor.utils import Command


@provides_provisioner('centos')
class CentOSProvisioner(FedoraProvisioner):
    os_release_id = 'centos'
    marker_command = Command('test', '-f', '/etc/centos-release')

    transport_packages = ('yum-utils',)

    package_manager_name = 'yum'

    add_repository_command = Command('sudo', 'yum-config-manager', '--add-repo')
