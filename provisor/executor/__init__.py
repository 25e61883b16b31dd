"""
Remote command execution.

Provisioners never talk to hosts directly, they hand shell commands to a
:py:class:`RemoteExecutor` which runs them on the host and reports their
output, or raises :py:class:`provisor.utils.RemoteCommandError`.
"""

import abc
from typing import Optional, Union

import provisor.log
import provisor.utils
from provisor.container import container
from provisor.utils import Command, CommandOutput, Path, ShellScript


@container(frozen=True)
class Machine:
    """
    A machine to provision, as described by the machine driver
    """

    #: Logical name of the machine, becomes its hostname.
    name: str

    #: Name of the driver which created the machine, e.g. ``generic``,
    #: ``virtualbox`` or ``amazonec2``.
    driver_name: str = 'none'

    #: Hostname or IP address the machine is reachable at.
    address: Optional[str] = None

    def __str__(self) -> str:
        return self.address or self.name


class RemoteExecutor(provisor.utils.Common, abc.ABC):
    """
    Runs shell commands on a given machine
    """

    def __init__(self, *, machine: Machine, logger: provisor.log.Logger) -> None:
        super().__init__(name=machine.name, logger=logger)

        self.machine = machine

    @property
    def host(self) -> str:
        return str(self.machine)

    @abc.abstractmethod
    def execute(
        self,
        command: Union[Command, ShellScript],
        friendly_command: Optional[str] = None,
        silent: bool = False,
    ) -> CommandOutput:
        """
        Execute a command on the machine.

        :param command: either a command or a shell script to execute.
        :param friendly_command: nice, human-friendly representation of the
            command.
        :param silent: if set, the command and its output would be logged
            on debug level only.
        :returns: command output.
        :raises RemoteCommandError: when the command failed.
        """

        raise NotImplementedError

    def write_file(
        self,
        path: Path,
        content: str,
        mode: Optional[str] = None,
        superuser: bool = True,
    ) -> None:
        """
        Write a file on the machine.

        The content is piped to ``tee``, no other transfer channel than the
        command execution itself is needed.

        :param path: destination path on the machine.
        :param content: content of the file.
        :param mode: if set, ``chmod`` the file to this mode.
        :param superuser: if set, write the file with ``sudo``.
        """

        sudo = 'sudo ' if superuser else ''

        script = ShellScript(
            f"printf '%s' {Command(content).to_element()}"
            f' | {sudo}tee {Command(path).to_element()} > /dev/null'
        )

        if mode is not None:
            script &= ShellScript(f'{sudo}chmod {Command(mode, path).to_element()}')

        self.execute(script, friendly_command=f"write file '{path}'", silent=True)
