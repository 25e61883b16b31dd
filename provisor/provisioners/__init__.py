"""
Provisioners installing the container engine on hosts.

Every provisioner handles one family of operating systems, one package
manager and one init system. A provisioner is picked by probing the host
against all registered provisioners, see :py:func:`detect_provisioner`,
and then :py:meth:`Provisioner.provision` runs its steps one by one.
"""

import dataclasses
import enum
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

import provisor.log
import provisor.plugins
import provisor.utils
from provisor.auth import AuthConfigurator, RemoteAuthConfigurator
from provisor.engine import (
    DEFAULT_STORAGE_DRIVER,
    SYSVINIT_OPTIONS_TEMPLATE,
    render_engine_options,
    render_options_file,
)
from provisor.facts import HostFacts
from provisor.options import (
    DEFAULT_SWARM_IMAGE,
    AuthOptions,
    DockerOptions,
    EngineOptions,
    ProvisionState,
    SwarmOptions,
)
from provisor.package_managers import (
    Package,
    PackageAction,
    PackageManager,
    PackageManagerEngine,
    find_package_manager,
)
from provisor.service_managers import ServiceAction, ServiceManager, find_service_manager
from provisor.swarm import ContainerSwarmConfigurator, SwarmConfigurator
from provisor.utils import Command, CommandOutput, Path, RunError, ShellScript
from provisor.utils.wait import DEFAULT_WAIT_TICK, DEFAULT_WAIT_TIMEOUT, default_waiting

if TYPE_CHECKING:
    from provisor.executor import Machine, RemoteExecutor


#: Port the daemon listens on for TLS connections.
DEFAULT_DOCKER_PORT = 2376

#: Seconds to pause after the daemon restarts with new options.
DEFAULT_SETTLE_DELAY = 2.0

#: File names of TLS material in the options directory.
CA_CERT_FILENAME = 'ca.pem'
SERVER_CERT_FILENAME = 'server.pem'
SERVER_KEY_FILENAME = 'server-key.pem'


class ProbeResult(enum.Enum):
    """
    Outcome of probing a host for compatibility
    """

    COMPATIBLE = 'compatible'
    INCOMPATIBLE = 'incompatible'

    #: Not enough information to decide, e.g. ``/etc/os-release`` is
    #: missing. Treated as not compatible.
    INCONCLUSIVE = 'inconclusive'

    @property
    def is_compatible(self) -> bool:
        return self is ProbeResult.COMPATIBLE


ProvisionerClass = type['Provisioner']

#: A provisioning step, accepting the previous state and returning a new one.
ProvisionStepCallable = Callable[[ProvisionState], ProvisionState]


_PROVISIONER_PLUGIN_REGISTRY: provisor.plugins.PluginRegistry[ProvisionerClass] = (
    provisor.plugins.PluginRegistry('provisioners')
)


def provides_provisioner(name: str) -> Callable[[ProvisionerClass], ProvisionerClass]:
    """
    A decorator for registering provisioners.

    Decorate a provisioner class to register it, under the given name, as
    a candidate for :py:func:`detect_provisioner`.
    """

    def _provides_provisioner(provisioner_cls: ProvisionerClass) -> ProvisionerClass:
        provisioner_cls.NAME = name

        _PROVISIONER_PLUGIN_REGISTRY.register_plugin(plugin_id=name, plugin=provisioner_cls)

        return provisioner_cls

    return _provides_provisioner


def iter_provisioner_classes() -> list[tuple[str, ProvisionerClass]]:
    """
    List registered provisioners.

    Built-in provisioners come first, in the order of
    :py:data:`provisor.plugins.PLUGIN_PACKAGES`, no matter which of their
    modules got imported first. Provisioners of other modules follow in
    the order of their registration.
    """

    def _position(item: tuple[str, ProvisionerClass]) -> int:
        module_name = item[1].__module__

        if module_name in provisor.plugins.PLUGIN_PACKAGES:
            return provisor.plugins.PLUGIN_PACKAGES.index(module_name)

        return len(provisor.plugins.PLUGIN_PACKAGES)

    return sorted(_PROVISIONER_PLUGIN_REGISTRY.items(), key=_position)


def find_provisioner(name: str) -> ProvisionerClass:
    """
    Find a provisioner by its name.

    :raises GeneralError: when the provisioner does not exist.
    """

    provisioner_cls = _PROVISIONER_PLUGIN_REGISTRY.get_plugin(name)

    if provisioner_cls is None:
        raise provisor.utils.GeneralError(
            f"Provisioner '{name}' was not found in provisioner registry."
        )

    return provisioner_cls


class Provisioner(provisor.utils.Common):
    """
    A base class of provisioners.

    Subclasses describe their operating system by class attributes, and
    override hooks where the generic behavior is not enough.
    """

    #: Name of the provisioner, set by :py:func:`provides_provisioner`.
    NAME: str

    #: ``ID`` from ``/etc/os-release`` the host must report.
    os_release_id: str

    #: A command which succeeds only on hosts of this kind. Together with
    #: :py:attr:`os_release_id` it must hold for the host to be compatible.
    marker_command: Command

    #: File holding the daemon options.
    options_file: Path = Path('/etc/default/docker')

    #: Directory holding daemon configuration and TLS material.
    options_dir: Path = Path('/etc/docker')

    #: Layout of :py:attr:`options_file`.
    options_template: str = SYSVINIT_OPTIONS_TEMPLATE

    #: Packages to install in addition to the engine itself.
    packages: tuple[str, ...] = ()

    #: Packages needed before the package repository can be registered.
    transport_packages: tuple[str, ...] = ()

    #: Generic package names mapped to names used by the distribution.
    package_aliases: dict[str, str] = {}  # noqa: RUF012

    storage_driver: str = DEFAULT_STORAGE_DRIVER

    #: If set, replaces the generic swarm image.
    swarm_image: Optional[str] = None

    package_manager_name: str = 'apt'
    service_manager_name: str = 'sysvinit'

    #: Name of the engine service.
    service_name: str = 'docker'

    #: State produced by the last successful :py:meth:`provision` call.
    state: Optional[ProvisionState] = None

    def __init__(
        self,
        *,
        executor: 'RemoteExecutor',
        facts: Optional[HostFacts] = None,
        auth_configurator: Optional[AuthConfigurator] = None,
        swarm_configurator: Optional[SwarmConfigurator] = None,
        docker_port: int = DEFAULT_DOCKER_PORT,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
        wait_tick: float = DEFAULT_WAIT_TICK,
        options_template_filepath: Optional[Path] = None,
        logger: provisor.log.Logger,
    ) -> None:
        super().__init__(name=self.NAME, logger=logger)

        provisor.plugins.explore(logger)

        self.executor = executor
        self.facts = facts or HostFacts()

        self.auth_configurator = auth_configurator or RemoteAuthConfigurator(logger)
        self.swarm_configurator = swarm_configurator or ContainerSwarmConfigurator(logger)

        self.docker_port = docker_port
        self.settle_delay = settle_delay
        self.wait_timeout = wait_timeout
        self.wait_tick = wait_tick
        self.options_template_filepath = options_template_filepath

        self.package_manager: PackageManager[PackageManagerEngine] = find_package_manager(
            self.package_manager_name
        )(executor=executor, logger=logger)
        self.service_manager: ServiceManager = find_service_manager(self.service_manager_name)(
            executor=executor, logger=logger
        )

    @property
    def machine(self) -> 'Machine':
        return self.executor.machine

    @property
    def host(self) -> str:
        return self.executor.host

    def execute(self, command: Union[Command, ShellScript], silent: bool = False) -> CommandOutput:
        return self.executor.execute(command, silent=silent)

    def _succeeds(self, command: Union[Command, ShellScript]) -> bool:
        try:
            self.execute(command, silent=True)

        except RunError:
            return False

        return True

    #
    # Detection
    #

    def probe(self, facts: Optional[HostFacts] = None) -> ProbeResult:
        """
        Find out whether the host is compatible with this provisioner.

        The marker command must succeed on the host, and the host must
        report the expected ``ID`` in ``/etc/os-release``. Never raises,
        failure of the marker command is an expected outcome.

        :param facts: facts about the host. If not set, facts known to the
            provisioner are used, fetched from the host if needed.
        """

        if facts is None:
            if not self.facts.in_sync:
                self.facts.sync(self.executor)

            facts = self.facts

        if not self._succeeds(self.marker_command):
            return ProbeResult.INCOMPATIBLE

        if not facts.os_release_content:
            return ProbeResult.INCONCLUSIVE

        if facts.os_release_id != self.os_release_id:
            return ProbeResult.INCOMPATIBLE

        return ProbeResult.COMPATIBLE

    def is_compatible(self, facts: Optional[HostFacts] = None) -> bool:
        return self.probe(facts).is_compatible

    #
    # Step primitives
    #

    def resolve_package(self, name: str) -> Package:
        return Package(self.package_aliases.get(name, name))

    def package(self, name: str, action: PackageAction) -> None:
        """
        Install, upgrade or remove a package.

        :param name: package name, possibly a generic one, e.g. ``docker``,
            which is then translated to the name used by the distribution.
        :raises RemoteCommandError: when a command fails.
        """

        package = self.resolve_package(name)

        self.debug(f"{action.value.capitalize()} package '{package}'.")

        self.package_manager.apply(action, package)

    def service(self, name: str, action: ServiceAction) -> None:
        """
        Perform an action on a service.

        :raises RemoteCommandError: when the command fails.
        """

        self.debug(f"Service '{name}': {action.verb}.")

        self.service_manager.apply(name, action)

    def set_hostname(self, hostname: str) -> None:
        """
        Set the hostname, persistently, and make it resolvable locally.
        """

        hostname = provisor.utils.validate_hostname(hostname)

        self.execute(
            Command('sudo', 'hostname', hostname).to_script()
            & ShellScript(f'echo {hostname} | sudo tee /etc/hostname')
        )
        self.execute(
            ShellScript(
                f"""
                if grep -xq '127.0.1.1.*' /etc/hosts; then
                    sudo sed -i 's/^127.0.1.1.*/127.0.1.1 {hostname}/g' /etc/hosts;
                else
                    echo '127.0.1.1 {hostname}' | sudo tee -a /etc/hosts;
                fi
                """
            )
        )

    def write_docker_options(self, docker_options: DockerOptions) -> None:
        """
        Install the daemon options file on the host.

        The daemon must be restarted for the options to take effect.
        """

        self.execute(Command('sudo', 'mkdir', '-p', docker_options.path.parent))
        self.executor.write_file(docker_options.path, docker_options.content)

        if self.service_manager.reloads_configuration:
            self.service(self.service_name, ServiceAction.DAEMON_RELOAD)

    def set_variant_hostname(self, hostname: str) -> None:
        """
        Set the hostname in places specific to the operating system
        """

    def repository_script(self) -> Optional[ShellScript]:
        """
        A script registering the package repository of the engine.

        The script must be safe to run repeatedly.
        """

        return None

    def is_docker_installed(self) -> bool:
        return self._succeeds(Command('type', 'docker').to_script())

    def is_docker_responding(self) -> bool:
        return self._succeeds(Command('sudo', 'docker', 'version'))

    def wait_for_daemon(self) -> None:
        """
        Wait until the daemon answers requests.

        :raises WaitingTimedOutError: when the daemon did not respond in time.
        """

        default_waiting(timeout=self.wait_timeout, tick=self.wait_tick).wait(
            self.is_docker_responding, self._logger
        )

    #
    # Steps
    #

    def _configure_identity(self, state: ProvisionState) -> ProvisionState:
        self.set_hostname(self.machine.name)
        self.set_variant_hostname(self.machine.name)

        return state

    def _bootstrap_package_transport(self, state: ProvisionState) -> ProvisionState:
        for name in self.transport_packages:
            self.package(name, PackageAction.INSTALL)

        return state

    def _register_package_repository(self, state: ProvisionState) -> ProvisionState:
        script = self.repository_script()

        if script:
            self.execute(script)

        return state

    def _queue_runtime_installation(self, state: ProvisionState) -> ProvisionState:
        if self.is_docker_installed():
            return state

        self.warn('Docker is not installed, it will be installed.')

        return state.evolve(packages=(*state.packages, 'docker'))

    def _install_pending_packages(self, state: ProvisionState) -> ProvisionState:
        for name in provisor.utils.uniq(state.packages):
            self.package(name, PackageAction.INSTALL)

        return state

    def _start_runtime(self, state: ProvisionState) -> ProvisionState:
        if not self.service_manager.is_running(self.service_name):
            self.warn('Docker is not running, starting it.')

            self.service(self.service_name, ServiceAction.START)

        return state

    def _wait_for_readiness(self, state: ProvisionState) -> ProvisionState:
        self.wait_for_daemon()

        return state

    def _prepare_options_dir(self, state: ProvisionState) -> ProvisionState:
        self.execute(Command('sudo', 'mkdir', '-p', self.options_dir))

        return state

    def _resolve_auth_paths(self, state: ProvisionState) -> ProvisionState:
        return state.evolve(
            auth_options=AuthOptions(
                ca_cert_path=state.auth_options.ca_cert_path,
                server_cert_path=state.auth_options.server_cert_path,
                server_key_path=state.auth_options.server_key_path,
                ca_cert_remote_path=self.options_dir / CA_CERT_FILENAME,
                server_cert_remote_path=self.options_dir / SERVER_CERT_FILENAME,
                server_key_remote_path=self.options_dir / SERVER_KEY_FILENAME,
            )
        )

    def _configure_auth(self, state: ProvisionState) -> ProvisionState:
        self.auth_configurator.configure(self, state)

        return state

    def _stabilize(self, state: ProvisionState) -> ProvisionState:
        if self.settle_delay > 0:
            self.debug(f'Wait {self.settle_delay} seconds for the daemon to settle.')

            time.sleep(self.settle_delay)

        return state

    def _configure_swarm(self, state: ProvisionState) -> ProvisionState:
        swarm_options = state.swarm_options

        if self.swarm_image is not None and swarm_options.image == DEFAULT_SWARM_IMAGE:
            swarm_options = dataclasses.replace(swarm_options, image=self.swarm_image)

        self.debug('swarm image', swarm_options.image)

        self.swarm_configurator.configure(self, swarm_options, state.auth_options)

        return state.evolve(swarm_options=swarm_options)

    def steps(self) -> list[tuple[str, ProvisionStepCallable]]:
        """
        Provisioning steps, in the order they run
        """

        return [
            ('configure identity', self._configure_identity),
            ('bootstrap package transport', self._bootstrap_package_transport),
            ('register package repository', self._register_package_repository),
            ('queue runtime installation', self._queue_runtime_installation),
            ('install pending packages', self._install_pending_packages),
            ('start runtime', self._start_runtime),
            ('wait for readiness', self._wait_for_readiness),
            ('prepare options directory', self._prepare_options_dir),
            ('resolve auth paths', self._resolve_auth_paths),
            ('configure auth', self._configure_auth),
            ('stabilize', self._stabilize),
            ('configure swarm', self._configure_swarm),
        ]

    def initial_state(
        self,
        swarm_options: Optional[SwarmOptions] = None,
        auth_options: Optional[AuthOptions] = None,
        engine_options: Optional[EngineOptions] = None,
    ) -> ProvisionState:
        engine_options = engine_options or EngineOptions()

        if engine_options.storage_driver is None:
            engine_options = dataclasses.replace(
                engine_options, storage_driver=self.storage_driver
            )

        return ProvisionState(
            engine_options=engine_options,
            auth_options=auth_options or AuthOptions(),
            swarm_options=swarm_options or SwarmOptions(),
            packages=self.packages,
        )

    def planned_state(
        self,
        swarm_options: Optional[SwarmOptions] = None,
        auth_options: Optional[AuthOptions] = None,
        engine_options: Optional[EngineOptions] = None,
    ) -> ProvisionState:
        """
        The state provisioning would reach, as far as options are concerned
        """

        return self._resolve_auth_paths(
            self.initial_state(swarm_options, auth_options, engine_options)
        )

    def provision(
        self,
        swarm_options: SwarmOptions,
        auth_options: AuthOptions,
        engine_options: EngineOptions,
    ) -> ProvisionState:
        """
        Provision the host.

        Steps run strictly in order, the first failing step stops the
        provisioning. Nothing is rolled back.

        :returns: the final provisioning state, also saved as
            :py:attr:`state`.
        :raises ProvisionStepError: when a step fails. The failing
            exception is its cause.
        """

        state = self.initial_state(swarm_options, auth_options, engine_options)

        for step_name, step in self.steps():
            self.verbose('step', step_name, color='cyan')

            try:
                state = step(state)

            except Exception as exc:
                raise provisor.utils.ProvisionStepError(step_name, self.host, exc) from exc

        self.state = state

        self.info('provisioned', self.host, color='green')

        return state

    def generate_docker_options(
        self, port: int, state: Optional[ProvisionState] = None
    ) -> DockerOptions:
        """
        Render the daemon options file.

        :param port: TCP port the daemon should listen on.
        :param state: provisioning state to render options for. If not set,
            state of the last provisioning is used, or a default state when
            the host has not been provisioned yet.
        :raises TemplateRenderError: when options cannot be rendered.
        """

        state = state or self.state or self.planned_state()

        engine_options = state.engine_options.with_label(f'provider={self.machine.driver_name}')

        flags = render_engine_options(
            port,
            state.auth_options,
            engine_options,
            default_storage_driver=self.storage_driver,
        )

        return DockerOptions(
            path=self.options_file,
            content=render_options_file(
                flags,
                template=self.options_template,
                template_filepath=self.options_template_filepath,
            ),
        )


def detect_provisioner(
    executor: 'RemoteExecutor',
    *,
    logger: provisor.log.Logger,
    **options: Any,
) -> Provisioner:
    """
    Find the provisioner compatible with the host.

    Facts about the host are fetched once and shared by all probes.

    :param executor: executor connected to the host.
    :param options: additional keyword arguments of the provisioner.
    :raises NoCompatibleProvisionerError: when no provisioner is compatible.
    :raises AmbiguousProvisionerError: when more than one provisioner is
        compatible with the host.
    """

    provisor.plugins.explore(logger)

    facts = HostFacts().sync(executor)

    compatible: list[Provisioner] = []

    for name, provisioner_cls in iter_provisioner_classes():
        provisioner = provisioner_cls(executor=executor, facts=facts, logger=logger, **options)

        result = provisioner.probe(facts)

        logger.debug(
            f"Probe '{name}' on '{executor.host}'",
            result.value,
            topic=provisor.log.Topic.PROBES,
        )

        if result.is_compatible:
            compatible.append(provisioner)

    if not compatible:
        raise provisor.utils.NoCompatibleProvisionerError(executor.host)

    if len(compatible) > 1:
        raise provisor.utils.AmbiguousProvisionerError(
            executor.host, [provisioner.NAME for provisioner in compatible]
        )

    logger.verbose('provisioner', compatible[0].NAME, color='green')

    return compatible[0]
