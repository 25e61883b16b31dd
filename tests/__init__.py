from collections.abc import Mapping, Sequence
from typing import IO, Any, Optional, Union

import click.core
import click.testing


def reset_plugins() -> None:
    """
    Reset the plugin exploration flag.

    Plugins are explored once per process, tests invoking the CLI pretend
    it is invoked for the very first time.
    """

    import provisor.plugins

    provisor.plugins.ALREADY_EXPLORED = False


class CliRunner(click.testing.CliRunner):
    def invoke(
        self,
        cli: click.core.Command,
        args: Optional[Union[str, Sequence[str]]] = None,
        input: Optional[Union[str, bytes, IO[Any]]] = None,
        env: Optional[Mapping[str, Optional[str]]] = None,
        catch_exceptions: bool = True,
        color: bool = False,
        **extra: Any,
    ) -> click.testing.Result:
        reset_plugins()

        return super().invoke(
            cli,
            args=args,
            input=input,
            env=env,
            catch_exceptions=catch_exceptions,
            color=color,
            **extra,
        )
