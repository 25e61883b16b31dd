import os
import re
from typing import Optional, Union

import provisor.log
import provisor.utils
from provisor.executor import Machine, RemoteExecutor
from provisor.utils import (
    Command,
    CommandOutput,
    Path,
    RawCommand,
    RemoteCommandError,
    RunError,
    ShellScript,
)

DEFAULT_USER = 'root'
DEFAULT_PORT = 22

_SSH_OPTION_ENVVAR_PATTERN = re.compile(r'^PROVISOR_SSH_([A-Za-z_]+)$')

#: Options of every connection. Hosts are fresh machines, their keys are
#: not known in advance.
DEFAULT_SSH_OPTIONS: RawCommand = [
    '-oForwardX11=no',
    '-oStrictHostKeyChecking=no',
    '-oUserKnownHostsFile=/dev/null',
    '-oLogLevel=quiet',
    '-oPasswordAuthentication=no',
    '-oConnectionAttempts=3',
    '-oConnectTimeout=30',
    '-oServerAliveInterval=5',
    '-oServerAliveCountMax=60',
]


def configure_ssh_options() -> RawCommand:
    """
    Collect SSH options from ``PROVISOR_SSH_*`` environment variables.

    The rest of the variable name is turned into the option name, e.g.
    ``PROVISOR_SSH_CONNECT_TIMEOUT=10`` gives ``-oConnectTimeout=10``.
    """

    options: RawCommand = []

    for name, value in sorted(os.environ.items()):
        match = _SSH_OPTION_ENVVAR_PATTERN.match(name)

        if match is not None:
            option = ''.join(word.capitalize() for word in match.group(1).split('_'))

            options.append(f'-o{option}={value}')

    return options


class SshExecutor(RemoteExecutor):
    """
    Runs commands on a host with the ``ssh`` client.

    Options from the environment come first, ``ssh`` uses the first value
    given for an option, therefore they override the defaults.
    """

    def __init__(
        self,
        *,
        machine: Machine,
        user: str = DEFAULT_USER,
        port: int = DEFAULT_PORT,
        key: Optional[Path] = None,
        timeout: Optional[int] = None,
        logger: provisor.log.Logger,
    ) -> None:
        super().__init__(machine=machine, logger=logger)

        if machine.address is None:
            raise provisor.utils.GeneralError(
                f"Machine '{machine.name}' has no address to connect to."
            )

        self.user = user
        self.port = port
        self.key = key
        self.timeout = timeout

    def _ssh_command(self, remote_command: str) -> Command:
        command = Command('ssh', *configure_ssh_options(), *DEFAULT_SSH_OPTIONS)
        command += ['-p', str(self.port)]

        if self.key is not None:
            command += ['-i', self.key, '-oIdentitiesOnly=yes']

        return command + [f'{self.user}@{self.machine.address}', remote_command]

    def execute(
        self,
        command: Union[Command, ShellScript],
        friendly_command: Optional[str] = None,
        silent: bool = False,
    ) -> CommandOutput:
        remote_command = (
            command.to_script() if isinstance(command, Command) else command
        ).to_element()

        self.debug('ssh', f'{self.host}: {remote_command}', level=2)

        try:
            return self.run(
                self._ssh_command(remote_command),
                friendly_command=friendly_command or str(command),
                silent=silent,
                timeout=self.timeout,
            )

        except RunError as exc:
            raise RemoteCommandError(
                command, self.host, exc.returncode, stdout=exc.stdout, stderr=exc.stderr
            ) from exc
