"""
Plugin discovery and registries.

Provisioners, package managers and service managers are plugins: classes
registering themselves, by a decorator, in a :py:class:`PluginRegistry`
when their module is imported. :py:func:`explore` imports the built-in
plugin modules and everything announced by other distributions under the
``provisor.plugin`` entry point group.
"""

import importlib
from collections.abc import Iterator
from importlib.metadata import entry_points
from typing import Callable, Generic, Optional, TypeVar

import provisor.log
import provisor.utils

ENTRY_POINT_NAME = 'provisor.plugin'

#: Set once :py:func:`explore` has finished.
ALREADY_EXPLORED = False

#: Modules of built-in plugins, in the order their plugins are listed.
PLUGIN_PACKAGES = [
    'provisor.package_managers.apt',
    'provisor.package_managers.dnf',
    'provisor.service_managers.sysvinit',
    'provisor.service_managers.systemd',
    'provisor.provisioners.hypriot',
    'provisor.provisioners.debian',
    'provisor.provisioners.ubuntu',
    'provisor.provisioners.fedora',
    'provisor.provisioners.centos',
]


def explore(logger: provisor.log.Logger, again: bool = False) -> None:
    """
    Import all plugin modules, unless done already.

    :param again: explore even when it has been done before.
    :raises GeneralError: when an entry point cannot be loaded.
    """

    global ALREADY_EXPLORED

    if ALREADY_EXPLORED and not again:
        return

    for module_name in PLUGIN_PACKAGES:
        logger.debug('plugin module', module_name, level=3)

        importlib.import_module(module_name)

    for found in entry_points(group=ENTRY_POINT_NAME):
        logger.debug('plugin entry point', f'{found.name} ({found.value})', level=2)

        try:
            found.load()

        # Entry points run arbitrary third-party code.
        except Exception as exc:
            raise provisor.utils.GeneralError(
                f"Failed to load plugin '{found.name}' ({found.value})."
            ) from exc

    ALREADY_EXPLORED = True


PluginT = TypeVar('PluginT')


class PluginRegistry(Generic[PluginT]):
    """
    Plugins of one kind, by their ids, in the order of registration
    """

    def __init__(self, name: str) -> None:
        self.name = name

        self._plugins: dict[str, PluginT] = {}

    def register_plugin(
        self,
        *,
        plugin_id: str,
        plugin: PluginT,
        raise_on_conflict: bool = True,
    ) -> None:
        """
        Add a plugin under the given id.

        :param raise_on_conflict: when unset, a plugin already registered
            under ``plugin_id`` is silently replaced.
        :raises GeneralError: when ``plugin_id`` is taken and
            ``raise_on_conflict`` is set.
        """

        existing = self._plugins.get(plugin_id)

        if existing is not None and raise_on_conflict:
            raise provisor.utils.GeneralError(
                f"Plugin '{plugin}' of registry '{self.name}'"
                f" collides with an already registered id '{plugin_id}' of '{existing}'."
            )

        self._plugins[plugin_id] = plugin

    def create_decorator(self) -> Callable[[str], Callable[[PluginT], PluginT]]:
        """
        Create a class decorator, ``@decorator(plugin_id)``, registering the class
        """

        def decorator(plugin_id: str) -> Callable[[PluginT], PluginT]:
            def register(plugin: PluginT) -> PluginT:
                self.register_plugin(plugin_id=plugin_id, plugin=plugin)

                return plugin

            return register

        return decorator

    def get_plugin(self, plugin_id: str) -> Optional[PluginT]:
        return self._plugins.get(plugin_id)

    def iter_plugin_ids(self) -> Iterator[str]:
        yield from self._plugins

    def iter_plugins(self) -> Iterator[PluginT]:
        yield from self._plugins.values()

    def items(self) -> Iterator[tuple[str, PluginT]]:
        yield from self._plugins.items()
