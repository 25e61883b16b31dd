import abc
import enum
import shlex
from collections.abc import Iterator
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

import provisor.log
import provisor.plugins
import provisor.utils
from provisor.utils import Command, CommandOutput, ShellScript

if TYPE_CHECKING:
    from provisor.executor import RemoteExecutor


class PackageAction(enum.Enum):
    """
    What to do with a package
    """

    INSTALL = 'install'
    REMOVE = 'remove'
    UPGRADE = 'upgrade'

    @property
    def refreshes_metadata(self) -> bool:
        """
        Whether package metadata must be refreshed before the action.

        Removal works with what is installed already, it does not need
        fresh metadata.
        """

        return self is not PackageAction.REMOVE


class Package(str):
    """
    A package name
    """


def escape_packages(*packages: Package) -> Iterator[str]:
    for package in packages:
        yield shlex.quote(str(package))


PackageManagerEngineT = TypeVar('PackageManagerEngineT', bound='PackageManagerEngine')
PackageManagerClass = type['PackageManager[PackageManagerEngineT]']


_PACKAGE_MANAGER_PLUGIN_REGISTRY: provisor.plugins.PluginRegistry[
    'PackageManagerClass[PackageManagerEngine]'
] = provisor.plugins.PluginRegistry('package_managers')

provides_package_manager: Callable[
    [str],
    Callable[
        ['PackageManagerClass[PackageManagerEngine]'], 'PackageManagerClass[PackageManagerEngine]'
    ],
] = _PACKAGE_MANAGER_PLUGIN_REGISTRY.create_decorator()


def find_package_manager(name: str) -> 'PackageManagerClass[PackageManagerEngine]':
    """
    Find a package manager by its name.

    :raises GeneralError: when the plugin does not exist.
    """

    plugin = _PACKAGE_MANAGER_PLUGIN_REGISTRY.get_plugin(name)

    if plugin is None:
        raise provisor.utils.GeneralError(
            f"Package manager '{name}' was not found in package manager registry."
        )

    return plugin


class PackageManagerEngine(abc.ABC):
    """
    Builds package manager commands without running them
    """

    command: Command
    options: Command

    def __init__(self) -> None:
        self.command, self.options = self.prepare_command()

    @abc.abstractmethod
    def prepare_command(self) -> tuple[Command, Command]:
        """
        Prepare the base command and its common options
        """

        raise NotImplementedError

    @abc.abstractmethod
    def refresh_metadata(self) -> ShellScript:
        raise NotImplementedError

    @abc.abstractmethod
    def install(self, *packages: Package) -> ShellScript:
        raise NotImplementedError

    @abc.abstractmethod
    def remove(self, *packages: Package) -> ShellScript:
        raise NotImplementedError

    @abc.abstractmethod
    def upgrade(self, *packages: Package) -> ShellScript:
        raise NotImplementedError

    def apply(self, action: PackageAction, *packages: Package) -> ShellScript:
        """
        Build a command performing the given action
        """

        if action is PackageAction.INSTALL:
            return self.install(*packages)

        if action is PackageAction.REMOVE:
            return self.remove(*packages)

        return self.upgrade(*packages)


class PackageManager(provisor.utils.Common, Generic[PackageManagerEngineT]):
    """
    A base class for package manager plugins
    """

    NAME: str

    _engine_class: type[PackageManagerEngineT]
    engine: PackageManagerEngineT

    def __init__(self, *, executor: 'RemoteExecutor', logger: provisor.log.Logger) -> None:
        super().__init__(logger=logger)

        self.engine = self._engine_class()

        self.executor = executor

    def refresh_metadata(self) -> CommandOutput:
        return self.executor.execute(self.engine.refresh_metadata())

    def install(self, *packages: Package) -> CommandOutput:
        return self.executor.execute(self.engine.install(*packages))

    def remove(self, *packages: Package) -> CommandOutput:
        return self.executor.execute(self.engine.remove(*packages))

    def upgrade(self, *packages: Package) -> CommandOutput:
        return self.executor.execute(self.engine.upgrade(*packages))

    def apply(self, action: PackageAction, *packages: Package) -> CommandOutput:
        """
        Perform an action on packages, refreshing metadata first if needed.

        Each command is executed once, there is no retry: re-running an
        installation of an already installed package is a no-op for the
        package manager itself.

        :raises RemoteCommandError: when either command fails.
        """

        if action.refreshes_metadata:
            self.debug('Refresh package metadata.')

            self.refresh_metadata()

        return self.executor.execute(self.engine.apply(action, *packages))
