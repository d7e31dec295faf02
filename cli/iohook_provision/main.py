import os
import sys
from pathlib import Path

import click

from iohook_provision import constants
from iohook_provision import hermetic
from iohook_provision import provisioning
from iohook_provision import repo_root
from iohook_provision import targets
from iohook_provision.errors import ProvisioningError


def root_option(f):
    return click.option(
        "--root",
        type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
        default=None,
        help="Install root of the add-on (default: nearest directory with a package.json).",
    )(f)


def strict_exit_codes_option(f):
    return click.option(
        "--strict-exit-codes",
        is_flag=True,
        help="Treat any non-zero node-gyp exit code as a failure, not just 1.",
    )(f)


def resolve_root(root: Path | None) -> Path:
    if root is not None:
        return root.resolve()
    return repo_root.find_repo_root_dir_Path()


@click.group()
def cli():
    pass


@cli.command()
@root_option
@click.option(
    "--base-url",
    default=lambda: os.environ.get(
        "IOHOOK_PREBUILD_BASE_URL", constants.DEFAULT_DOWNLOAD_BASE_URL
    ),
    show_default=constants.DEFAULT_DOWNLOAD_BASE_URL,
    help="Where release archives are published.",
)
@strict_exit_codes_option
def install(root: Path | None, base_url: str, strict_exit_codes: bool):
    """Download (or else compile) the add-on for every configured target."""
    try:
        root = resolve_root(root)
        ctx = provisioning.mk_context(root, base_url, strict_exit_codes=strict_exit_codes)
        matrix = targets.resolve_build_matrix(root, ctx.host)
        provisioning.provision_matrix(matrix, ctx)
    except ProvisioningError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@root_option
@strict_exit_codes_option
def build(root: Path | None, strict_exit_codes: bool):
    """Compile the add-on for this machine and package it, skipping the download."""
    try:
        root = resolve_root(root)
        ctx = provisioning.mk_context(
            root, constants.DEFAULT_DOWNLOAD_BASE_URL, strict_exit_codes=strict_exit_codes
        )
        target = targets.host_target(root, ctx.host)
        archive = provisioning.build_and_package(target, ctx)
    except ProvisioningError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Packaged {target.essential} into {archive}")


@cli.command()
@root_option
def matrix(root: Path | None):
    """Print the targets `install` would provision, in order."""
    try:
        root = resolve_root(root)
        host = targets.query_host_runtime()
        resolved = targets.resolve_build_matrix(root, host)
    except ProvisioningError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    for target in resolved:
        click.echo(target.essential)


@cli.command()
@root_option
def show_build_args(root: Path | None):
    """Print the node-gyp command line `build` would run on this machine."""
    try:
        root = resolve_root(root)
        host = targets.query_host_runtime()
        target = targets.host_target(root, host)
    except ProvisioningError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    config = hermetic.BuildConfig(
        runtime=target.runtime,
        host_version=host.node_version,
        abi=target.abi,
        arch=target.arch,
        platform=target.platform,
    )
    gyp = hermetic.node_gyp_path(root, config.platform)
    cmd = [str(gyp), *hermetic.synthesize_build_args(config)]
    click.echo(hermetic.shellize(cmd))


if __name__ == "__main__":
    cli()
