"""
Facts about the host being provisioned.
"""

import re
import shlex
from typing import TYPE_CHECKING, Optional

import provisor.log
import provisor.utils
from provisor.container import container, simple_field
from provisor.utils import Command, Path

if TYPE_CHECKING:
    from provisor.executor import RemoteExecutor


#: The file describing the operating system of the host.
OS_RELEASE_PATH = Path('/etc/os-release')

_OS_RELEASE_LINE_PATTERN = re.compile(r'^([A-Z][A-Z0-9_]+)=(.*)$')


def parse_os_release(content: str, origin: str, logger: provisor.log.Logger) -> dict[str, str]:
    """
    Parse ``KEY=value`` lines of an ``os-release`` file.

    Values may be quoted the way a shell would quote them. Comments and
    blank lines are skipped, and so are lines which cannot be parsed, with
    a warning.

    :param origin: describes where the content came from, for warnings.
    """

    pairs: dict[str, str] = {}

    for line_number, line in enumerate(content.splitlines(), start=1):
        line = line.strip()

        if not line or line.startswith('#'):
            continue

        match = _OS_RELEASE_LINE_PATTERN.match(line)

        if match is None:
            logger.warning(f'Skipping line {line_number} in {origin}, not a pair: {line}')
            continue

        key, raw_value = match.groups()

        try:
            pairs[key] = ' '.join(shlex.split(raw_value))

        except ValueError as exc:
            logger.warning(f'Skipping line {line_number} in {origin}, {exc}: {line}')

    return pairs


@container
class HostFacts:
    """
    Contains interesting facts about the host.

    Facts are fetched once, by :py:meth:`sync`, and then shared by all
    provisioners probing the host. Facts which cannot be fetched stay
    unset, it is up to the probes to decide what a missing fact means.
    """

    #: Set to ``True`` by the first call to :py:meth:`sync`.
    in_sync: bool = False

    arch: Optional[str] = None
    kernel_release: Optional[str] = None

    os_release_content: dict[str, str] = simple_field(default_factory=dict)

    @property
    def os_release_id(self) -> Optional[str]:
        """
        The ``ID`` field of ``/etc/os-release``, e.g. ``debian`` or ``raspbian``
        """

        return self.os_release_content.get('ID')

    @property
    def distro(self) -> Optional[str]:
        return self.os_release_content.get('PRETTY_NAME')

    @staticmethod
    def _read(executor: 'RemoteExecutor', command: Command) -> Optional[str]:
        try:
            output = executor.execute(command, silent=True)

        except provisor.utils.RemoteCommandError as exc:
            executor.debug('fact unavailable', f'{command}: {exc.returncode}', level=3)

            return None

        return output.stdout or None

    def sync(self, executor: 'RemoteExecutor') -> 'HostFacts':
        """
        Fetch facts from the host
        """

        os_release = self._read(executor, Command('cat', OS_RELEASE_PATH))

        self.os_release_content = (
            parse_os_release(
                os_release,
                f"'{OS_RELEASE_PATH}' on host '{executor.host}'",
                executor._logger,
            )
            if os_release
            else {}
        )

        arch = self._read(executor, Command('uname', '-m'))
        kernel_release = self._read(executor, Command('uname', '-r'))

        self.arch = arch.strip() if arch else None
        self.kernel_release = kernel_release.strip() if kernel_release else None

        self.in_sync = True

        executor.debug('os-release id', self.os_release_id or 'unknown', level=2)

        return self
