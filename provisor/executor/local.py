from typing import Optional, Union

from provisor.executor import RemoteExecutor
from provisor.utils import Command, CommandOutput, RemoteCommandError, RunError, ShellScript


class LocalExecutor(RemoteExecutor):
    """
    Runs commands on the local host

    Useful for provisioning the very machine provisor runs on.
    """

    def execute(
        self,
        command: Union[Command, ShellScript],
        friendly_command: Optional[str] = None,
        silent: bool = False,
    ) -> CommandOutput:
        actual_command = command if isinstance(command, Command) else command.to_shell_command()

        try:
            return self.run(
                actual_command,
                friendly_command=friendly_command or str(command),
                silent=silent,
            )

        except RunError as exc:
            raise RemoteCommandError(
                command, self.host, exc.returncode, stdout=exc.stdout, stderr=exc.stderr
            ) from exc
