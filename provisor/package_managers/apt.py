from provisor.package_managers import (
    Package,
    PackageManager,
    PackageManagerEngine,
    escape_packages,
    provides_package_manager,
)
from provisor.utils import Command, ShellScript

#: Keeps ``apt-get`` from asking questions, e.g. about config file conflicts.
NONINTERACTIVE = 'DEBIAN_FRONTEND=noninteractive'


class AptEngine(PackageManagerEngine):
    def prepare_command(self) -> tuple[Command, Command]:
        """
        Prepare installation command for apt
        """

        return (Command('sudo', '-E', 'apt-get'), Command('-y'))

    def _action(self, verb: str, *packages: Package) -> ShellScript:
        return ShellScript(
            f'{NONINTERACTIVE} {self.command.to_script()} {verb}'
            f' {self.options.to_script()} {" ".join(escape_packages(*packages))}'
        )

    def refresh_metadata(self) -> ShellScript:
        return ShellScript(f'{self.command.to_script()} update')

    def install(self, *packages: Package) -> ShellScript:
        return self._action('install', *packages)

    def remove(self, *packages: Package) -> ShellScript:
        return self._action('remove', *packages)

    def upgrade(self, *packages: Package) -> ShellScript:
        # ``apt-get install`` upgrades already installed packages.
        return self._action('install', *packages)


@provides_package_manager('apt')
class Apt(PackageManager[AptEngine]):
    NAME = 'apt'

    _engine_class = AptEngine
