"""CLI interface for fleetbench"""

import json
import logging
from pathlib import Path
from typing import Optional, Tuple

import click

from fleetbench.application.fleet_service import FleetService
from fleetbench.domain.models.enrollment import new_fleet_enrollment
from fleetbench.infrastructure.agent.launcher import AgentLauncher
from fleetbench.infrastructure.config.config_manager import ConfigManager
from fleetbench.infrastructure.container.runtime import ContainerRuntime, create_docker_client
from fleetbench.infrastructure.kibana.client import KibanaClient
from fleetbench.infrastructure.retry import RetryPolicy

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)
    # docker/urllib3 are noisy at DEBUG
    for name in ("docker", "urllib3"):
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _load_config(ctx: click.Context) -> ConfigManager:
    return ConfigManager(config_path=ctx.obj.get("config_path"))


def _create_runtime(config_manager: ConfigManager) -> ContainerRuntime:
    """Create a container runtime from config

    Args:
        config_manager: Configuration manager

    Returns:
        ContainerRuntime connected to the engine
    """
    docker_config = config_manager.get_docker_config()
    client = create_docker_client(docker_config)
    tag_policy = RetryPolicy.from_config(config_manager.get_tag_image_config())
    return ContainerRuntime(client, config=docker_config, tag_policy=tag_policy)


def _create_fleet_service(config_manager: ConfigManager) -> FleetService:
    runtime = _create_runtime(config_manager)
    fleet_config = config_manager.get_fleet_config()
    launcher = AgentLauncher(
        runtime, binary=fleet_config.agent_binary, user=fleet_config.agent_user
    )
    return FleetService(runtime, launcher=launcher)


def _run(ctx: click.Context, step):
    """Run a CLI step, turning failures into a ClickException"""
    verbose = ctx.obj.get("verbose", False)
    try:
        return step(_load_config(ctx))
    except click.ClickException:
        raise
    except Exception as e:
        _die(f"Fatal error: {e}", verbose=verbose, exc=e)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .fleetbench.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """fleetbench - end-to-end test tooling for Fleet-managed agents"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command("tag-image")
@click.argument("src")
@click.argument("target")
@click.pass_context
def tag_image(ctx, src: str, target: str):
    """Tag image SRC as TARGET, retrying while the engine catches up."""
    _run(ctx, lambda cm: _create_runtime(cm).tag_image(src, target))
    click.echo(f"Tagged {src} as {target}")


@cli.command("load-image")
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def load_image(ctx, image_path: Path):
    """Load a gzip-compressed image tarball."""
    images = _run(ctx, lambda cm: _create_runtime(cm).load_image(image_path))
    click.echo(f"Loaded {len(images or [])} image(s) from {image_path}")


@cli.command("exec", context_settings={"ignore_unknown_options": True})
@click.argument("container")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("--user", "-u", default="root", show_default=True, help="User to run as")
@click.option("--env", "-e", "env", multiple=True, help="KEY=VALUE environment entry")
@click.pass_context
def exec_command(ctx, container: str, command: Tuple[str, ...], user: str, env: Tuple[str, ...]):
    """Execute COMMAND inside CONTAINER."""
    output = _run(
        ctx, lambda cm: _create_runtime(cm).exec_command(container, user, list(command), list(env))
    )
    click.echo(output)


@cli.command()
@click.argument("name")
@click.pass_context
def inspect(ctx, name: str):
    """Print the inspection of the managed container NAME as JSON."""
    attrs = _run(ctx, lambda cm: _create_runtime(cm).inspect_container(name))
    click.echo(json.dumps(attrs, indent=2, default=str))


@cli.command("rm")
@click.argument("name")
@click.pass_context
def remove(ctx, name: str):
    """Force-remove container NAME and its volumes."""
    _run(ctx, lambda cm: _create_runtime(cm).remove_container(name))
    click.echo(f"Removed {name}")


@cli.group()
def network():
    """Manage the test-private network."""


@network.command("create")
@click.pass_context
def network_create(ctx):
    """Create the test network unless it exists."""
    _run(ctx, lambda cm: _create_runtime(cm).ensure_network())
    click.echo("Network ready")


@network.command("rm")
@click.pass_context
def network_remove(ctx):
    """Remove the test network."""
    _run(ctx, lambda cm: _create_runtime(cm).remove_network())
    click.echo("Network removed")


@cli.command("bootstrap-fleet-server")
@click.argument("container")
@click.pass_context
def bootstrap_fleet_server(ctx, container: str):
    """Install the agent in CONTAINER as the initial Fleet Server."""

    def _step(cm: ConfigManager) -> str:
        enrollment = new_fleet_enrollment(
            "", bootstrap_fleet_server=True, fleet_config=cm.get_fleet_config()
        )
        return _create_fleet_service(cm).bootstrap_fleet_server(container, enrollment)

    click.echo(_run(ctx, _step))


@cli.command()
@click.argument("container")
@click.option("--token", required=True, help="Fleet enrollment token")
@click.option(
    "--fleet-server-mode",
    is_flag=True,
    help="Also run Fleet Server, using the default Fleet Server policy",
)
@click.option(
    "--subcommand",
    type=click.Choice(["install", "enroll"]),
    default="install",
    show_default=True,
)
@click.pass_context
def enroll(ctx, container: str, token: str, fleet_server_mode: bool, subcommand: str):
    """Enroll the agent running in CONTAINER into Fleet."""

    def _step(cm: ConfigManager) -> str:
        lookup = KibanaClient(cm.get_kibana_config()).get_default_policy if fleet_server_mode else None
        enrollment = new_fleet_enrollment(
            token,
            fleet_server_mode=fleet_server_mode,
            policy_lookup=lookup,
            fleet_config=cm.get_fleet_config(),
        )
        return _create_fleet_service(cm).enroll_agent(container, enrollment, subcommand)

    click.echo(_run(ctx, _step))


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
