"""
Logging of provisor.

A thin layer on top of :py:mod:`logging`. Messages are key/value pairs,
indented to follow the nesting of the work being done, and optionally
colorized. Verbosity (``-v``), debugging (``-d``) and quiet mode are not
mapped onto logging levels: ``verbose()`` always logs with ``INFO``,
``debug()`` with ``DEBUG``, and the requested level travels with the record
in :py:class:`LogRecordDetails`. Handlers then decide with the help of
filters below.
"""

import dataclasses
import enum
import itertools
import logging
import os
import re
import sys
from typing import TYPE_CHECKING, Any, Optional, Union

import click

if TYPE_CHECKING:
    import provisor.utils

#: Number of spaces per indentation level.
INDENT = 4

#: Environment variable overriding the debug level of all loggers.
DEBUG_ENVVAR = 'PROVISOR_DEBUG'

#: Name of the :py:class:`logging.Logger` wrapped by the root logger.
ROOT_LOGGER_NAME = 'provisor'


class Topic(enum.Enum):
    """
    Optional message categories, silent unless enabled by ``--log-topic``
    """

    COMMAND_EVENTS = 'command-events'
    PROBES = 'probes'


LoggableValue = Union[
    str,
    int,
    bool,
    float,
    'provisor.utils.Path',
    'provisor.utils.Command',
    'provisor.utils.ShellScript',
]

_ANSI_ESCAPE_PATTERN = re.compile(r'\x1b\[[0-9;]*m')


def remove_color(text: str) -> str:
    return _ANSI_ESCAPE_PATTERN.sub('', text)


def _debug_level_from_environment() -> Optional[int]:
    raw_value = os.getenv(DEBUG_ENVVAR)

    if not raw_value:
        return None

    try:
        return int(raw_value)

    except ValueError as exc:
        import provisor.utils

        raise provisor.utils.GeneralError(
            f"Invalid value '{raw_value}' of {DEBUG_ENVVAR}, an integer is expected."
        ) from exc


def decide_colorization(no_color: bool, force_color: bool) -> tuple[bool, bool]:
    """
    Find out whether output and logging should use colors.

    Forcing colors, by ``--force-color`` or ``PROVISOR_FORCE_COLOR``, wins
    over disabling them by ``--no-color``, ``NO_COLOR`` or
    ``PROVISOR_NO_COLOR``. With neither, colors are used when the stream
    is a terminal.

    :returns: colorization of the output (stdout) and of logging (stderr).
    """

    if force_color or 'PROVISOR_FORCE_COLOR' in os.environ:
        return True, True

    if no_color or 'NO_COLOR' in os.environ or 'PROVISOR_NO_COLOR' in os.environ:
        return False, False

    return sys.stdout.isatty(), sys.stderr.isatty()


def indent(
    key: str,
    value: Optional[LoggableValue] = None,
    color: Optional[str] = None,
    level: int = 0,
) -> str:
    """
    Render a key/value message.

    Renders ``key: value``, or just ``key`` when there is no value. Values
    spanning several lines are placed below the key, one level deeper.

    :param color: color of the key.
    :param level: indentation level, :py:data:`INDENT` spaces each.
    """

    padding = ' ' * INDENT * level

    if color is not None:
        key = click.style(key, fg=color)

    if value is None:
        return f'{padding}{key}'

    lines = str(value).splitlines()

    if len(lines) <= 1:
        return f'{padding}{key}: {value}'

    nested = padding + ' ' * INDENT

    return '\n'.join([f'{padding}{key}:', *(f'{nested}{line}' for line in lines)])


@dataclasses.dataclass
class LogRecordDetails:
    """
    Message and logger settings carried by each log record
    """

    key: str
    value: Optional[LoggableValue] = None

    color: Optional[str] = None
    shift: int = 0

    logger_verbosity_level: int = 0
    message_verbosity_level: Optional[int] = None

    logger_debug_level: int = 0
    message_debug_level: Optional[int] = None

    logger_quiet: bool = False

    logger_topics: set[Topic] = dataclasses.field(default_factory=set)
    message_topic: Optional[Topic] = None


class _Formatter(logging.Formatter):
    def __init__(self, fmt: str, apply_colors: bool) -> None:
        super().__init__(fmt, datefmt='%H:%M:%S')

        self.apply_colors = apply_colors

    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)

        return rendered if self.apply_colors else remove_color(rendered)


class _DetailsFilter(logging.Filter):
    """
    Base of filters deciding by :py:class:`LogRecordDetails` of a record.

    Records of other levels than those listed in ``levels`` always pass.
    Records without details pass when ``accept_plain`` is set.
    """

    levels: tuple[int, ...] = (logging.DEBUG, logging.INFO)
    accept_plain: bool = True

    def accepts(self, details: LogRecordDetails) -> bool:
        raise NotImplementedError

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno not in self.levels:
            return True

        details: Optional[LogRecordDetails] = getattr(record, 'details', None)

        if details is None:
            return self.accept_plain

        return self.accepts(details)


class VerbosityLevelFilter(_DetailsFilter):
    levels = (logging.INFO,)

    def accepts(self, details: LogRecordDetails) -> bool:
        if details.message_verbosity_level is None:
            return True

        return details.logger_verbosity_level >= details.message_verbosity_level


class DebugLevelFilter(_DetailsFilter):
    levels = (logging.DEBUG,)

    def accepts(self, details: LogRecordDetails) -> bool:
        if details.message_debug_level is None:
            return True

        return details.logger_debug_level >= details.message_debug_level


class QuietnessFilter(_DetailsFilter):
    """
    Silences everything but warnings and errors of a quiet logger
    """

    accept_plain = False

    def accepts(self, details: LogRecordDetails) -> bool:
        return not details.logger_quiet


class TopicFilter(_DetailsFilter):
    accept_plain = False

    def accepts(self, details: LogRecordDetails) -> bool:
        return details.message_topic is None or details.message_topic in details.logger_topics


class Logger:
    """
    Wraps a :py:class:`logging.Logger` with verbosity settings.

    Loggers form a tree: :py:meth:`descend` creates a child logger whose
    messages are indented one level deeper than messages of its parent.
    """

    def __init__(
        self,
        actual_logger: logging.Logger,
        base_shift: int = 0,
        verbosity_level: int = 0,
        debug_level: int = 0,
        quiet: bool = False,
        topics: Optional[set[Topic]] = None,
        apply_colors_output: bool = True,
        apply_colors_logging: bool = True,
    ) -> None:
        """
        :param actual_logger: the raw logger to emit records to.
        :param base_shift: indentation added to every message.
        :param quiet: if set, only warnings, errors and :py:meth:`print`
            output are emitted.
        """

        self._logger = actual_logger
        self._base_shift = base_shift
        self._children = itertools.count()

        self.verbosity_level = verbosity_level
        self.debug_level = debug_level
        self.quiet = quiet
        self.topics = set(topics or ())

        self.apply_colors_output = apply_colors_output
        self.apply_colors_logging = apply_colors_logging

    def __repr__(self) -> str:
        return (
            f'<Logger: name={self._logger.name} verbosity={self.verbosity_level}'
            f' debug={self.debug_level} quiet={self.quiet} topics={self.topics}>'
        )

    @staticmethod
    def _reset(logger: logging.Logger) -> logging.Logger:
        logger.propagate = True
        logger.level = logging.DEBUG
        logger.handlers = []

        return logger

    def descend(self, logger_name: Optional[str] = None, extra_shift: int = 1) -> 'Logger':
        """
        Create a child logger, indenting messages by ``extra_shift`` levels
        """

        actual_logger = self._reset(
            self._logger.getChild(logger_name or f'logger{next(self._children)}')
        )

        return Logger(
            actual_logger,
            base_shift=self._base_shift + extra_shift,
            verbosity_level=self.verbosity_level,
            debug_level=self.debug_level,
            quiet=self.quiet,
            topics=self.topics,
            apply_colors_output=self.apply_colors_output,
            apply_colors_logging=self.apply_colors_logging,
        )

    def add_logfile_handler(self, filepath: 'provisor.utils.Path') -> None:
        """
        Save all messages, regardless of verbosity, into a file
        """

        handler = logging.FileHandler(filepath, mode='a')
        handler.setFormatter(_Formatter('%(asctime)s %(message)s', apply_colors=False))
        handler.addFilter(TopicFilter())

        self._logger.addHandler(handler)

    def add_console_handler(self) -> None:
        """
        Emit messages allowed by verbosity settings to stderr
        """

        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(
            _Formatter('%(message)s', apply_colors=self.apply_colors_logging)
        )

        for log_filter in (
            VerbosityLevelFilter(),
            DebugLevelFilter(),
            QuietnessFilter(),
            TopicFilter(),
        ):
            handler.addFilter(log_filter)

        self._logger.addHandler(handler)

    def apply_verbosity_options(
        self,
        verbose: int = 0,
        debug: int = 0,
        quiet: bool = False,
        log_topic: Optional[Any] = None,
        **kwargs: Any,
    ) -> 'Logger':
        """
        Update settings from command line options.

        :py:data:`DEBUG_ENVVAR`, when set, takes precedence over ``debug``.
        """

        if verbose:
            self.verbosity_level = verbose

        env_debug_level = _debug_level_from_environment()

        if env_debug_level is not None:
            self.debug_level = env_debug_level

        elif debug:
            self.debug_level = debug

        if quiet:
            self.quiet = True

        for name in log_topic or ():
            try:
                self.topics.add(Topic(name))

            except ValueError as exc:
                import provisor.utils

                raise provisor.utils.GeneralError(
                    f"Logging topic '{name}' is invalid, choose from"
                    f" {', '.join(topic.value for topic in Topic)}."
                ) from exc

        return self

    @classmethod
    def create(
        cls,
        actual_logger: Optional[logging.Logger] = None,
        apply_colors_output: bool = True,
        apply_colors_logging: bool = True,
        **verbosity_options: Any,
    ) -> 'Logger':
        """
        Create a root logger.

        Meant for the command line entry point, for tests, and for
        applications using provisor as a library with a logger of their own.

        :param actual_logger: the raw logger to wrap. The ``provisor``
            logger is used by default.
        """

        return Logger(
            actual_logger or cls._reset(logging.getLogger(ROOT_LOGGER_NAME)),
            apply_colors_output=apply_colors_output,
            apply_colors_logging=apply_colors_logging,
        ).apply_verbosity_options(**verbosity_options)

    def _log(self, level: int, details: LogRecordDetails) -> None:
        details.logger_verbosity_level = self.verbosity_level
        details.logger_debug_level = self.debug_level
        details.logger_quiet = self.quiet
        details.logger_topics = self.topics
        details.shift += self._base_shift

        # Colors are always applied here, formatters remove them if needed.
        message = indent(
            details.key, value=details.value, color=details.color, level=details.shift
        )

        self._logger.log(level, message, extra={'details': details})

    def print(self, text: str, color: Optional[str] = None, shift: int = 0) -> None:
        message = indent(text, color=color, level=shift + self._base_shift)

        print(message if self.apply_colors_output else remove_color(message))

    def info(
        self,
        key: str,
        value: Optional[LoggableValue] = None,
        color: Optional[str] = None,
        shift: int = 0,
    ) -> None:
        self._log(logging.INFO, LogRecordDetails(key=key, value=value, color=color, shift=shift))

    def verbose(
        self,
        key: str,
        value: Optional[LoggableValue] = None,
        color: Optional[str] = None,
        shift: int = 0,
        level: int = 1,
        topic: Optional[Topic] = None,
    ) -> None:
        self._log(
            logging.INFO,
            LogRecordDetails(
                key=key,
                value=value,
                color=color,
                shift=shift,
                message_verbosity_level=level,
                message_topic=topic,
            ),
        )

    def debug(
        self,
        key: str,
        value: Optional[LoggableValue] = None,
        color: Optional[str] = None,
        shift: int = 0,
        level: int = 1,
        topic: Optional[Topic] = None,
    ) -> None:
        self._log(
            logging.DEBUG,
            LogRecordDetails(
                key=key,
                value=value,
                color=color,
                shift=shift,
                message_debug_level=level,
                message_topic=topic,
            ),
        )

    def warning(self, message: str, shift: int = 0) -> None:
        self._log(
            logging.WARNING,
            LogRecordDetails(key='warn', value=message, color='yellow', shift=shift),
        )

    def fail(self, message: str, shift: int = 0) -> None:
        self._log(
            logging.ERROR,
            LogRecordDetails(key='fail', value=message, color='red', shift=shift),
        )
