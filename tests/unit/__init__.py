import logging
from typing import Any

import _pytest.logging

from provisor.log import LogRecordDetails, remove_color


def _record_matches(record: logging.LogRecord, **tests: Any) -> bool:
    details: LogRecordDetails = getattr(record, 'details', None)  # type: ignore[assignment]

    for field_name, expected in tests.items():
        if field_name.startswith('details_'):
            if details is None:
                return False

            actual = getattr(details, field_name[len('details_') :])

        elif field_name == 'message':
            actual = remove_color(record.getMessage())

        else:
            actual = getattr(record, field_name)

        if actual != expected:
            return False

    return True


def assert_log(caplog: _pytest.logging.LogCaptureFixture, **tests: Any) -> None:
    """
    Assert a log record matching all given tests has been captured.

    ``details_*`` keys test fields of :py:class:`LogRecordDetails` attached
    to the record, ``message`` tests the rendered message without colors, other keys test
    attributes of the record itself.
    """

    if any(_record_matches(record, **tests) for record in caplog.records):
        return

    raise AssertionError(
        f'No log record matches {tests}, captured:\n'
        + '\n'.join(f'  {record.levelname} {record.getMessage()!r}' for record in caplog.records)
    )


def assert_not_log(caplog: _pytest.logging.LogCaptureFixture, **tests: Any) -> None:
    matching = [record for record in caplog.records if _record_matches(record, **tests)]

    assert not matching, f'Unexpected log records matching {tests}: {matching}'
