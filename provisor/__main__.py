import sys


def run_cli() -> None:
    """
    Entry point of the ``provisor`` command.

    Errors escaping the command line are rendered with their causes, and
    the command exits with code 2.
    """

    try:
        import provisor.cli
        import provisor.utils

    except ImportError as error:
        print(f'Error: could not import provisor: {error}', file=sys.stderr)
        raise SystemExit(1) from error

    try:
        provisor.cli.main()

    except Exception as error:
        provisor.utils.show_exception(error, provisor.cli.EXCEPTION_LOGGER)

        raise SystemExit(2) from error


if __name__ == '__main__':
    run_cli()
