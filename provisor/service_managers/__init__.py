"""
Init system abstraction.

Service managers turn a :py:class:`ServiceAction` into the command line
understood by the init system of the host, and tell whether a service
is running.
"""

import abc
import enum
from typing import TYPE_CHECKING, Callable

import provisor.log
import provisor.plugins
import provisor.utils
from provisor.utils import Command, CommandOutput, RemoteCommandError

if TYPE_CHECKING:
    from provisor.executor import RemoteExecutor


class ServiceAction(enum.Enum):
    """
    What to do with a service
    """

    START = 'start'
    STOP = 'stop'
    RESTART = 'restart'
    ENABLE = 'enable'
    DISABLE = 'disable'
    DAEMON_RELOAD = 'daemon-reload'

    @property
    def verb(self) -> str:
        return self.value


ServiceManagerClass = type['ServiceManager']


_SERVICE_MANAGER_PLUGIN_REGISTRY: provisor.plugins.PluginRegistry[ServiceManagerClass] = (
    provisor.plugins.PluginRegistry('service_managers')
)

provides_service_manager: Callable[
    [str], Callable[[ServiceManagerClass], ServiceManagerClass]
] = _SERVICE_MANAGER_PLUGIN_REGISTRY.create_decorator()


def find_service_manager(name: str) -> ServiceManagerClass:
    """
    Find a service manager by its name.

    :raises GeneralError: when the plugin does not exist.
    """

    plugin = _SERVICE_MANAGER_PLUGIN_REGISTRY.get_plugin(name)

    if plugin is None:
        raise provisor.utils.GeneralError(
            f"Service manager '{name}' was not found in service manager registry."
        )

    return plugin


class ServiceManager(provisor.utils.Common, abc.ABC):
    """
    A base class for service manager plugins
    """

    NAME: str

    #: Whether changes of unit files take effect only after
    #: :py:attr:`ServiceAction.DAEMON_RELOAD`.
    reloads_configuration: bool = False

    def __init__(self, *, executor: 'RemoteExecutor', logger: provisor.log.Logger) -> None:
        super().__init__(logger=logger)

        self.executor = executor

    @abc.abstractmethod
    def action_command(self, name: str, action: ServiceAction) -> Command:
        """
        Build a command performing the action on the service
        """

        raise NotImplementedError

    @abc.abstractmethod
    def status_command(self, name: str) -> Command:
        """
        Build a command which succeeds when the service is running
        """

        raise NotImplementedError

    def apply(self, name: str, action: ServiceAction) -> CommandOutput:
        """
        Perform an action on a service.

        :raises RemoteCommandError: when the command fails.
        """

        return self.executor.execute(self.action_command(name, action))

    def is_running(self, name: str) -> bool:
        try:
            self.executor.execute(self.status_command(name), silent=True)

        except RemoteCommandError:
            return False

        return True
