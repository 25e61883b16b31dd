from provisor.package_managers import (
    Package,
    PackageManager,
    PackageManagerEngine,
    escape_packages,
    provides_package_manager,
)
from provisor.utils import Command, ShellScript


class DnfEngine(PackageManagerEngine):
    _base_command = Command('dnf')

    def prepare_command(self) -> tuple[Command, Command]:
        """
        Prepare installation command for dnf
        """

        return (Command('sudo', '-E') + self._base_command, Command('-y'))

    def _action(self, verb: str, *packages: Package) -> ShellScript:
        return ShellScript(
            f'{self.command.to_script()} {verb} {self.options.to_script()}'
            f' {" ".join(escape_packages(*packages))}'
        )

    def refresh_metadata(self) -> ShellScript:
        return ShellScript(f'{self.command.to_script()} makecache')

    def install(self, *packages: Package) -> ShellScript:
        return self._action('install', *packages)

    def remove(self, *packages: Package) -> ShellScript:
        return self._action('remove', *packages)

    def upgrade(self, *packages: Package) -> ShellScript:
        return self._action('upgrade', *packages)


@provides_package_manager('dnf')
class Dnf(PackageManager[DnfEngine]):
    NAME = 'dnf'

    _engine_class = DnfEngine


class YumEngine(DnfEngine):
    _base_command = Command('yum')


@provides_package_manager('yum')
class Yum(PackageManager[YumEngine]):
    NAME = 'yum'

    _engine_class = YumEngine
