"""
Command line interface.
"""

from typing import Any, Callable, Optional, TypeVar

import click

import provisor.config
import provisor.log
import provisor.plugins
import provisor.provisioners
import provisor.utils
from provisor.container import container
from provisor.executor import RemoteExecutor
from provisor.executor.local import LocalExecutor
from provisor.executor.ssh import SshExecutor
from provisor.utils import Path

FC = TypeVar('FC', bound=Callable[..., Any])

ClickOptionDecoratorType = Callable[[FC], FC]

#: A logger to use for exception logging. Starts as a bootstrap logger,
#: replaced by the properly configured one once ``main`` runs.
EXCEPTION_LOGGER: provisor.log.Logger = provisor.log.Logger.create()


VERBOSITY_OPTIONS: list[ClickOptionDecoratorType[Any]] = [
    click.option(
        '-v',
        '--verbose',
        count=True,
        default=0,
        help='Log more details, repeat for even more.',
    ),
    click.option(
        '-d',
        '--debug',
        count=True,
        default=0,
        help='Log debugging messages, repeat for more of them.',
    ),
    click.option('-q', '--quiet', is_flag=True, help='Log only warnings and errors.'),
    click.option(
        '--log-topic',
        type=click.Choice([topic.value for topic in provisor.log.Topic]),
        multiple=True,
        help='Enable messages of this topic, may be repeated.',
    ),
]

PROVISIONER_OPTION: list[ClickOptionDecoratorType[Any]] = [
    click.option(
        '-p',
        '--provisioner',
        metavar='NAME',
        default=None,
        help='Use this provisioner instead of detecting one. The host must still be compatible.',
    ),
]


def create_options_decorator(options: list[ClickOptionDecoratorType[Any]]) -> Callable[[FC], FC]:
    def common_decorator(fn: FC) -> FC:
        for option in reversed(options):
            fn = option(fn)

        return fn

    return common_decorator


verbosity_options = create_options_decorator(VERBOSITY_OPTIONS)
provisioner_option = create_options_decorator(PROVISIONER_OPTION)


@container
class ContextObject:
    """
    Click context object shared by all commands
    """

    logger: provisor.log.Logger
    config_path: Optional[Path] = None

    def load_config(self) -> provisor.config.ProvisionConfig:
        return provisor.config.load_config(self.config_path, logger=self.logger)


def create_executor(
    config: provisor.config.ProvisionConfig, logger: provisor.log.Logger
) -> RemoteExecutor:
    """
    Create an executor for the configured host.

    Hosts without an address are the local machine.
    """

    machine = config.host.to_machine()

    if machine.address is None:
        return LocalExecutor(machine=machine, logger=logger)

    return SshExecutor(
        machine=machine,
        user=config.host.user,
        port=config.host.port,
        key=config.host.key_path,
        timeout=config.host.timeout,
        logger=logger,
    )


def create_provisioner(
    config: provisor.config.ProvisionConfig,
    logger: provisor.log.Logger,
    name: Optional[str] = None,
) -> provisor.provisioners.Provisioner:
    """
    Create a provisioner for the configured host.

    :param name: if set, this provisioner is used instead of detecting
        one, as long as it is compatible with the host.
    :raises NoCompatibleProvisionerError: when the host is not compatible.
    """

    executor = create_executor(config, logger)

    options: dict[str, Any] = {
        'docker_port': config.docker_port,
        'settle_delay': config.settle_delay,
        'wait_timeout': config.wait_timeout,
        'wait_tick': config.wait_tick,
        'options_template_filepath': config.options_template_filepath,
    }

    if name is None:
        return provisor.provisioners.detect_provisioner(executor, logger=logger, **options)

    provisor.plugins.explore(logger)

    provisioner = provisor.provisioners.find_provisioner(name)(
        executor=executor, logger=logger, **options
    )

    if not provisioner.is_compatible():
        raise provisor.utils.NoCompatibleProvisionerError(executor.host)

    return provisioner


@click.group()
@click.pass_context
@click.option(
    '-c',
    '--config',
    'config_path',
    metavar='PATH',
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file, 'provision.yaml' in the config directory used by default.",
)
@click.option(
    '--log-file',
    metavar='PATH',
    type=click.Path(dir_okay=False),
    default=None,
    help='Save complete log, including debugging messages, into this file.',
)
@verbosity_options
@click.option(
    '--no-color',
    is_flag=True,
    default=False,
    help='Never use colors.',
)
@click.option(
    '--force-color',
    is_flag=True,
    default=False,
    help='Use colors even when not writing to a terminal.',
)
@click.version_option(package_name='provisor', prog_name='provisor')
def main(
    click_context: click.Context,
    config_path: Optional[str],
    log_file: Optional[str],
    no_color: bool,
    force_color: bool,
    **kwargs: Any,
) -> None:
    """
    Install and configure the Docker engine on remote hosts
    """

    global EXCEPTION_LOGGER

    click_context.max_content_width = provisor.utils.OUTPUT_WIDTH

    apply_colors_output, apply_colors_logging = provisor.log.decide_colorization(
        no_color, force_color
    )

    logger = provisor.log.Logger.create(
        apply_colors_output=apply_colors_output,
        apply_colors_logging=apply_colors_logging,
        **kwargs,
    )
    logger.add_console_handler()

    if log_file is not None:
        logger.add_logfile_handler(Path(log_file))

    click_context.color = apply_colors_output

    EXCEPTION_LOGGER = logger

    click_context.obj = ContextObject(
        logger=logger,
        config_path=Path(config_path) if config_path is not None else None,
    )


@main.command(name='variants')
@click.pass_context
def variants(click_context: click.Context) -> None:
    """
    List available provisioners
    """

    context: ContextObject = click_context.obj

    provisor.plugins.explore(context.logger)

    for name, provisioner_cls in provisor.provisioners.iter_provisioner_classes():
        click.echo(
            f'{name:<10} {provisioner_cls.os_release_id:<10}'
            f' {provisioner_cls.package_manager_name}/{provisioner_cls.service_manager_name}'
        )


@main.command(name='detect')
@click.pass_context
def detect(click_context: click.Context) -> None:
    """
    Detect the provisioner compatible with the host
    """

    context: ContextObject = click_context.obj

    provisioner = create_provisioner(context.load_config(), context.logger)

    click.echo(provisioner.NAME)


@main.command(name='provision')
@click.pass_context
@provisioner_option
def provision(click_context: click.Context, provisioner: Optional[str]) -> None:
    """
    Install and configure the engine on the host
    """

    context: ContextObject = click_context.obj
    config = context.load_config()

    host_provisioner = create_provisioner(config, context.logger, name=provisioner)

    host_provisioner.provision(
        config.swarm.to_options(),
        config.auth.to_options(),
        config.engine.to_options(),
    )


@main.command(name='options')
@click.pass_context
@provisioner_option
def options(click_context: click.Context, provisioner: Optional[str]) -> None:
    """
    Show the daemon options provisioning would install
    """

    context: ContextObject = click_context.obj
    config = context.load_config()

    host_provisioner = create_provisioner(config, context.logger, name=provisioner)

    docker_options = host_provisioner.generate_docker_options(
        config.docker_port,
        host_provisioner.planned_state(
            config.swarm.to_options(),
            config.auth.to_options(),
            config.engine.to_options(),
        ),
    )

    context.logger.info('path', str(docker_options.path))

    click.echo(docker_options.content, nl=False)
