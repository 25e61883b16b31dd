"""
Provisioning utilities
"""

import dataclasses
import os
import pathlib
import re
import shlex
import subprocess
import sys
import textwrap
from collections.abc import Iterable, Iterator
from typing import Any, Literal, Optional, TypeAlias, TypeVar, Union

import click
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

import provisor.log
from provisor.log import LoggableValue, Logger

T = TypeVar('T')

#: Shell interpreting :py:class:`ShellScript` when run as a command.
DEFAULT_SHELL = 'bash'

#: Width of separators and help texts.
OUTPUT_WIDTH = 79

#: Lines of command output shown with a failed command, unless verbose.
OUTPUT_LINES = 100

#: Exit codes reported by a shell for commands which could not run.
EXIT_CODE_TIMEOUT = 124
EXIT_CODE_NOT_FOUND = 127


class Path(pathlib.PosixPath):
    """
    A path on the local or remote filesystem
    """


#: Anything accepted as an element of :py:class:`Command`.
RawCommandElement = Union[str, Path]
RawCommand: TypeAlias = list[RawCommandElement]


@dataclasses.dataclass(frozen=True)
class CommandOutput:
    stdout: Optional[str]
    stderr: Optional[str]


class ShellScript:
    """
    Free-form text to be interpreted by a shell.

    Scripts compose with operators: ``a & b`` runs ``b`` only when ``a``
    succeeded, ``a | b`` only when ``a`` failed, and ``a + b`` runs both
    in sequence. An empty script is neutral in all three.
    """

    def __init__(self, script: str) -> None:
        self._script = textwrap.dedent(script)

    def __str__(self) -> str:
        return self._script

    def __repr__(self) -> str:
        return f'<ShellScript: {self._script!r}>'

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ShellScript) and self._script == other._script

    def __hash__(self) -> int:
        return hash(self._script)

    def __bool__(self) -> bool:
        return bool(self._script)

    def _join(self, other: 'ShellScript', separator: str) -> 'ShellScript':
        if not other:
            return self

        if not self:
            return other

        return ShellScript(f'{self._script}{separator}{other._script}')

    def __and__(self, other: 'ShellScript') -> 'ShellScript':
        return self._join(other, ' && ')

    def __or__(self, other: 'ShellScript') -> 'ShellScript':
        return self._join(other, ' || ')

    def __add__(self, other: 'ShellScript') -> 'ShellScript':
        return self._join(other, '; ')

    @classmethod
    def from_scripts(cls, scripts: Iterable['ShellScript']) -> 'ShellScript':
        """
        Chain scripts to run one after another, skipping empty ones
        """

        result = ShellScript('')

        for script in scripts:
            result += script

        return result

    def to_element(self) -> str:
        return self._script

    def to_shell_command(self) -> 'Command':
        """
        Wrap the script into a command running it with :py:data:`DEFAULT_SHELL`
        """

        return Command(DEFAULT_SHELL, '-c', self._script)


class Command:
    """
    A program and its arguments, kept apart until the command runs.

    ``str()`` gives a properly quoted command line, suitable for logging
    or for passing the command to a remote shell.
    """

    def __init__(self, *elements: RawCommandElement) -> None:
        self._command = [str(element) for element in elements]

    def __str__(self) -> str:
        return self.to_element()

    def __repr__(self) -> str:
        return f'<Command: {self._command!r}>'

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Command) and self._command == other._command

    def __hash__(self) -> int:
        return hash(tuple(self._command))

    def __bool__(self) -> bool:
        return bool(self._command)

    def __add__(self, other: Union['Command', RawCommand, list[str]]) -> 'Command':
        extra = other._command if isinstance(other, Command) else other

        return Command(*self._command, *extra)

    def to_element(self) -> str:
        return ' '.join(shlex.quote(element) for element in self._command)

    def to_script(self) -> ShellScript:
        return ShellScript(self.to_element())

    def to_popen(self) -> list[str]:
        return list(self._command)

    def run(
        self,
        *,
        env: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        message: Optional[str] = None,
        friendly_command: Optional[str] = None,
        silent: bool = False,
        logger: Logger,
    ) -> CommandOutput:
        """
        Run the command locally and wait for it to finish.

        :param env: variables added to the environment of the current
            process for the command.
        :param timeout: seconds after which the command is killed.
        :param message: logged before the command runs.
        :param friendly_command: shown in logs instead of the command line.
        :param silent: log the command and its output on debug level only.
        :raises RunError: when the command cannot be started, exceeds the
            timeout or exits with a non-zero code.
        """

        if message:
            logger.verbose(message, level=2)

        if not silent:
            logger.verbose('cmd', friendly_command or str(self), color='yellow', level=2)

        logger.debug('run', str(self), level=2, topic=provisor.log.Topic.COMMAND_EVENTS)

        output_logger = logger.debug if silent else logger.verbose

        try:
            process = subprocess.run(
                self.to_popen(),
                env={**os.environ, **env} if env is not None else None,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=timeout,
                check=False,
            )

        except FileNotFoundError as exc:
            raise RunError(
                f"File '{exc.filename}' not found.", self, EXIT_CODE_NOT_FOUND
            ) from exc

        except subprocess.TimeoutExpired as exc:
            raise RunError(
                f"Command '{friendly_command or self}' timed out after {timeout} seconds.",
                self,
                EXIT_CODE_TIMEOUT,
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr),
            ) from exc

        stdout, stderr = _decode(process.stdout), _decode(process.stderr)

        for key, output in (('out', stdout), ('err', stderr)):
            for line in output.splitlines():
                output_logger(key, value=line, color='yellow', level=3)

        logger.debug(f"Command returned '{process.returncode}'.", level=3)

        if process.returncode != 0:
            raise RunError(
                f"Command '{friendly_command or self}' returned {process.returncode}.",
                self,
                process.returncode,
                stdout=stdout,
                stderr=stderr,
            )

        return CommandOutput(stdout, stderr)


def _decode(raw: Optional[bytes]) -> str:
    return raw.decode('utf-8', errors='replace') if raw else ''


class Common:
    """
    Base of objects logging through a shared logger.

    Offers shortcuts to the logger and :py:meth:`run` for local commands.
    """

    def __init__(self, *, name: Optional[str] = None, logger: Logger, **kwargs: Any) -> None:
        super().__init__(**kwargs)

        self.name = name or type(self).__name__.lower()
        self._logger = logger

    def __str__(self) -> str:
        return self.name

    def info(
        self,
        key: str,
        value: Optional[LoggableValue] = None,
        color: Optional[str] = None,
        shift: int = 0,
    ) -> None:
        self._logger.info(key, value=value, color=color, shift=shift)

    def verbose(
        self,
        key: str,
        value: Optional[LoggableValue] = None,
        color: Optional[str] = None,
        shift: int = 0,
        level: int = 1,
    ) -> None:
        self._logger.verbose(key, value=value, color=color, shift=shift, level=level)

    def debug(
        self,
        key: str,
        value: Optional[LoggableValue] = None,
        color: Optional[str] = None,
        shift: int = 0,
        level: int = 1,
    ) -> None:
        self._logger.debug(key, value=value, color=color, shift=shift, level=level)

    def warn(self, message: str, shift: int = 0) -> None:
        self._logger.warning(message, shift=shift)

    def run(
        self,
        command: Command,
        friendly_command: Optional[str] = None,
        silent: bool = False,
        timeout: Optional[float] = None,
    ) -> CommandOutput:
        return command.run(
            friendly_command=friendly_command,
            silent=silent,
            timeout=timeout,
            logger=self._logger,
        )


#
# Exceptions
#


class GeneralError(Exception):
    """
    Base of all provisor errors.

    Besides ``__cause__``, an error may carry a list of ``causes``, for
    failures triggered by more than one earlier exception. Both are
    reported by :py:func:`render_exception`.
    """

    def __init__(
        self,
        message: str,
        causes: Optional[list[Exception]] = None,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, *args, **kwargs)

        self.message = message
        self.causes = causes or []


class FileError(GeneralError):
    """
    A local file could not be read or written
    """


class SpecificationError(GeneralError):
    """
    A configuration file is not valid
    """


class RunError(GeneralError):
    """
    A command failed
    """

    def __init__(
        self,
        message: str,
        command: Union[Command, ShellScript],
        returncode: int,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, *args, **kwargs)

        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class RemoteCommandError(RunError):
    """
    A command failed on the provisioned host
    """

    def __init__(
        self,
        command: Union[Command, ShellScript],
        host: str,
        returncode: int,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Command '{command}' failed on host '{host}' with exit code {returncode}.",
            command,
            returncode,
            stdout=stdout,
            stderr=stderr,
        )

        self.host = host


class TemplateRenderError(GeneralError):
    """
    A template could not be parsed or rendered
    """


class ProvisionError(GeneralError):
    pass


class ProvisionStepError(ProvisionError):
    """
    A step of the provisioning pipeline failed
    """

    def __init__(self, step: str, host: str, cause: Exception) -> None:
        super().__init__(f"Provisioning step '{step}' failed on host '{host}'.", [cause])

        self.step = step
        self.host = host


class NoCompatibleProvisionerError(ProvisionError):
    def __init__(self, host: str) -> None:
        super().__init__(f"No compatible provisioner found for host '{host}'.")

        self.host = host


class AmbiguousProvisionerError(ProvisionError):
    def __init__(self, host: str, candidates: list[str]) -> None:
        super().__init__(
            f"Host '{host}' is compatible with more than one provisioner:"
            f" {', '.join(candidates)}."
        )

        self.host = host
        self.candidates = candidates


def _render_output(name: str, output: str, verbose: int) -> Iterator[str]:
    lines = output.strip().splitlines()
    total = len(lines)

    if verbose > 0 or total <= OUTPUT_LINES:
        yield f'{name} ({total} lines)'

    else:
        lines = lines[-OUTPUT_LINES:]
        yield f'{name} (last {OUTPUT_LINES} of {total} lines)'

    yield '~' * OUTPUT_WIDTH
    yield from lines
    yield '~' * OUTPUT_WIDTH


def _collect_causes(exception: BaseException) -> list[BaseException]:
    causes: list[BaseException] = []

    if isinstance(exception, GeneralError):
        causes.extend(exception.causes)

    if exception.__cause__ is not None and exception.__cause__ not in causes:
        causes.append(exception.__cause__)

    return causes


def render_exception(exception: BaseException, verbose: int = 0) -> Iterator[str]:
    """
    Render an exception, the output of a failed command and all causes.

    Causes are rendered recursively, each one indented below the error
    it caused.
    """

    yield click.style(str(exception), fg='red')

    if isinstance(exception, RunError):
        for name, output in (('stdout', exception.stdout), ('stderr', exception.stderr)):
            if output:
                yield ''
                yield from _render_output(name, output, verbose)

    causes = _collect_causes(exception)

    for number, cause in enumerate(causes, start=1):
        yield ''
        yield f'Cause number {number} of {len(causes)}:'
        yield ''

        for line in render_exception(cause, verbose=verbose):
            yield textwrap.indent(line, ' ' * provisor.log.INDENT) if line else line


def show_exception(exception: BaseException, logger: Logger) -> None:
    """
    Print an exception and its causes to stderr
    """

    rendered = '\n'.join(render_exception(exception, verbose=logger.verbosity_level))

    if not logger.apply_colors_logging:
        rendered = provisor.log.remove_color(rendered)

    print('', file=sys.stderr)
    print(rendered, file=sys.stderr)


#
# Helpers
#


def uniq(values: Iterable[T]) -> list[T]:
    """
    Drop duplicates, keep the order of first occurrences
    """

    return list(dict.fromkeys(values))


YamlTypType = Literal['rt', 'safe', 'unsafe', 'base']


def yaml_to_dict(data: Any, yaml_type: Optional[YamlTypType] = None) -> dict[Any, Any]:
    """
    Load a YAML mapping.

    An empty document gives an empty dictionary.

    :raises GeneralError: when the data is not valid YAML or not a mapping.
    """

    try:
        loaded = YAML(typ=yaml_type).load(data)

    except YAMLError as error:
        raise GeneralError(f'Invalid yaml syntax: {error}') from error

    if loaded is None:
        return {}

    if not isinstance(loaded, dict):
        raise GeneralError(f"Expected dictionary in yaml data, got '{type(loaded).__name__}'.")

    return loaded


_HOSTNAME_LABEL_PATTERN = re.compile(r'^(?!-)[a-zA-Z0-9-]{1,63}(?<!-)$')


def validate_hostname(hostname: str) -> str:
    """
    Make sure ``hostname`` is a valid RFC 1123 hostname.

    Hostnames end up in shell commands and files on the host, nothing
    else may pass.

    :returns: the hostname, unchanged.
    :raises GeneralError: when the hostname is not valid.
    """

    if (
        not hostname
        or len(hostname) > 253
        or not all(_HOSTNAME_LABEL_PATTERN.match(label) for label in hostname.split('.'))
    ):
        raise GeneralError(f"Invalid hostname '{hostname}'.")

    return hostname
