import provisor.utils
from provisor.service_managers import ServiceAction, ServiceManager, provides_service_manager
from provisor.utils import Command


@provides_service_manager('sysvinit')
class SysVInit(ServiceManager):
    """
    Services controlled by the ``service`` wrapper of SysV init scripts
    """

    NAME = 'sysvinit'

    def action_command(self, name: str, action: ServiceAction) -> Command:
        if action is ServiceAction.DAEMON_RELOAD:
            raise provisor.utils.GeneralError(
                f"Service action '{action.verb}' is not supported by '{self.NAME}'."
            )

        return Command('sudo', 'service', name, action.verb)

    def status_command(self, name: str) -> Command:
        return Command('sudo', 'service', name, 'status')
