import logging
from typing import Optional

import _pytest.capture
import _pytest.logging
import pytest

from provisor.log import (
    DebugLevelFilter,
    Logger,
    LogRecordDetails,
    QuietnessFilter,
    Topic,
    TopicFilter,
    VerbosityLevelFilter,
    decide_colorization,
    indent,
    remove_color,
)

from . import assert_log, assert_not_log


def _exercise_logger(
    caplog: _pytest.logging.LogCaptureFixture,
    capsys: _pytest.capture.CaptureFixture[str],
    logger: Logger,
    indent_by: str = '',
) -> None:
    prefix = indent_by

    caplog.clear()

    logger.print('this is printed')
    logger.debug('this is a debug message')
    logger.verbose('this is a verbose message')
    logger.info('this is just an info')
    logger.warning('this is a warning')
    logger.fail('this is a failure')

    captured = capsys.readouterr()

    assert_not_log(caplog, details_key='this is printed')
    assert remove_color(captured.out) == f'{prefix}this is printed\n'
    assert_log(
        caplog,
        message=f'{prefix}this is a debug message',
        details_key='this is a debug message',
        levelno=logging.DEBUG,
    )
    assert_log(
        caplog,
        message=f'{prefix}this is a verbose message',
        details_key='this is a verbose message',
        levelno=logging.INFO,
    )
    assert_log(
        caplog,
        message=f'{prefix}this is just an info',
        details_key='this is just an info',
        levelno=logging.INFO,
    )
    assert_log(
        caplog,
        message=f'{prefix}warn: this is a warning',
        details_key='warn',
        details_value='this is a warning',
        levelno=logging.WARNING,
    )
    assert_log(
        caplog,
        message=f'{prefix}fail: this is a failure',
        details_key='fail',
        details_value='this is a failure',
        levelno=logging.ERROR,
    )


def test_sanity(
    caplog: _pytest.logging.LogCaptureFixture,
    capsys: _pytest.capture.CaptureFixture[str],
    root_logger: Logger,
) -> None:
    _exercise_logger(caplog, capsys, root_logger)


def test_creation() -> None:
    logger = Logger.create()
    assert logger._logger.name == 'provisor'

    actual_logger = logging.Logger('3rd-party-app-logger')  # noqa: LOG001
    logger = Logger.create(actual_logger)
    assert logger._logger is actual_logger


def test_descend(
    caplog: _pytest.logging.LogCaptureFixture,
    capsys: _pytest.capture.CaptureFixture[str],
    root_logger: Logger,
) -> None:
    deeper_logger = root_logger.descend().descend().descend()

    _exercise_logger(caplog, capsys, deeper_logger, indent_by='            ')


def test_debug_envvar(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('PROVISOR_DEBUG', '3')

    assert Logger.create(debug=1).debug_level == 3


@pytest.mark.parametrize(
    ('logger_verbosity', 'message_verbosity', 'filter_outcome'),
    [
        (0, 1, False),
        (1, 1, True),
        (2, 1, True),
        (1, 2, False),
        (2, 2, True),
        (3, 4, False),
    ],
)
def test_verbosity_filter(
    logger_verbosity: int, message_verbosity: int, filter_outcome: bool
) -> None:
    record = logging.makeLogRecord({
        'levelno': logging.INFO,
        'details': LogRecordDetails(
            key='dummy key',
            logger_verbosity_level=logger_verbosity,
            message_verbosity_level=message_verbosity,
        ),
    })

    assert VerbosityLevelFilter().filter(record) == filter_outcome


@pytest.mark.parametrize(
    ('logger_debug', 'message_debug', 'filter_outcome'),
    [
        (0, 1, False),
        (1, 1, True),
        (1, 2, False),
        (3, 2, True),
    ],
)
def test_debug_filter(logger_debug: int, message_debug: int, filter_outcome: bool) -> None:
    record = logging.makeLogRecord({
        'levelno': logging.DEBUG,
        'details': LogRecordDetails(
            key='dummy key',
            logger_debug_level=logger_debug,
            message_debug_level=message_debug,
        ),
    })

    assert DebugLevelFilter().filter(record) == filter_outcome


@pytest.mark.parametrize(
    ('levelno', 'quiet', 'filter_outcome'),
    [
        (logging.INFO, True, False),
        (logging.INFO, False, True),
        (logging.WARNING, True, True),
        (logging.ERROR, True, True),
    ],
)
def test_quietness_filter(levelno: int, quiet: bool, filter_outcome: bool) -> None:
    record = logging.makeLogRecord({
        'levelno': levelno,
        'details': LogRecordDetails(key='dummy key', logger_quiet=quiet),
    })

    assert QuietnessFilter().filter(record) == filter_outcome


@pytest.mark.parametrize(
    ('logger_topics', 'message_topic', 'filter_outcome'),
    [
        (set(), None, True),
        (set(), Topic.PROBES, False),
        ({Topic.PROBES}, Topic.PROBES, True),
        ({Topic.COMMAND_EVENTS}, Topic.PROBES, False),
    ],
)
def test_topic_filter(
    logger_topics: set[Topic], message_topic: Optional[Topic], filter_outcome: bool
) -> None:
    record = logging.makeLogRecord({
        'levelno': logging.DEBUG,
        'details': LogRecordDetails(
            key='dummy key',
            logger_topics=logger_topics,
            message_topic=message_topic,
        ),
    })

    assert TopicFilter().filter(record) == filter_outcome


def test_invalid_topic() -> None:
    with pytest.raises(Exception, match="Logging topic 'nope' is invalid"):
        Logger.create(log_topic=['nope'])


def test_indent() -> None:
    assert indent('key') == 'key'
    assert indent('key', value='value', level=1) == '    key: value'
    assert indent('key', value='first\nsecond') == 'key:\n    first\n    second'


@pytest.mark.parametrize(
    ('no_color', 'force_color', 'env', 'expected'),
    [
        (True, False, {}, (False, False)),
        (False, True, {}, (True, True)),
        (False, False, {'NO_COLOR': ''}, (False, False)),
        (False, False, {'PROVISOR_FORCE_COLOR': ''}, (True, True)),
    ],
)
def test_decide_colorization(
    monkeypatch: pytest.MonkeyPatch,
    no_color: bool,
    force_color: bool,
    env: dict[str, str],
    expected: tuple[bool, bool],
) -> None:
    for name in ('NO_COLOR', 'PROVISOR_NO_COLOR', 'PROVISOR_FORCE_COLOR'):
        monkeypatch.delenv(name, raising=False)

    for name, value in env.items():
        monkeypatch.setenv(name, value)

    assert decide_colorization(no_color, force_color) == expected
