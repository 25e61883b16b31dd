from provisor.service_managers import ServiceAction, ServiceManager, provides_service_manager
from provisor.utils import Command


@provides_service_manager('systemd')
class Systemd(ServiceManager):
    NAME = 'systemd'

    reloads_configuration = True

    def action_command(self, name: str, action: ServiceAction) -> Command:
        # Reload applies to the manager itself, not to a unit.
        if action is ServiceAction.DAEMON_RELOAD:
            return Command('sudo', 'systemctl', action.verb)

        return Command('sudo', 'systemctl', action.verb, name)

    def status_command(self, name: str) -> Command:
        return Command('sudo', 'systemctl', 'is-active', '--quiet', name)
