import os
import re
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, TypeAlias

import click
from packaging.version import Version

from iohook_provision import constants
from iohook_provision.errors import BuildError
from iohook_provision.reporting import sez

# Files that node-gyp reads from its working directory; one set per variant under build_def/.
BUILD_DEFINITION_FILES = ["binding.gyp", "uiohook.gyp"]


@dataclass(frozen=True)
class BuildConfig:
    runtime: str
    # Version of the runtime we compile against (always the host's node, see provisioning).
    host_version: str
    abi: int
    arch: str
    platform: str


def build_def_variant(platform: str) -> str:
    match platform:
        case "win32" | "darwin":
            return platform
        case _:
            return "linux"


def select_build_definition(root: Path, platform: str) -> Path:
    return root / "build_def" / build_def_variant(platform)


def install_build_definition(root: Path, platform: str) -> None:
    """Makes the platform's gyp files the active build configuration at `root`."""
    for name in BUILD_DEFINITION_FILES:
        (root / name).unlink(missing_ok=True)

    srcdir = select_build_definition(root, platform)
    for name in BUILD_DEFINITION_FILES:
        shutil.copyfile(srcdir / name, root / name)


def msvs_toolset_for(host_version: str) -> tuple[int, int]:
    if Version(host_version).major >= 4:
        return 15, 2017
    return 12, 2013


def synthesize_build_args(config: BuildConfig) -> list[str]:
    args = [
        "configure",
        "rebuild",
        f"--target={config.host_version}",
        f"--arch={config.arch}",
    ]

    if re.match(r"^electron", config.runtime, re.IGNORECASE):
        args.append(f"--dist-url={constants.ELECTRON_DIST_URL}")

    if config.abi >= 80:
        if config.arch == "x64":
            args.append("--v8_enable_pointer_compression=1")
        else:
            args.append("--v8_enable_pointer_compression=0")
            args.append("--v8_enable_31bit_smis_on_64bit_arch=1")

    if config.platform != "win32":
        if config.abi >= 64:
            args.append("--build_v8_with_gn=false")
        if config.abi >= 67:
            args.append("--enable_lto=false")
    else:
        _toolset, msvs_version = msvs_toolset_for(config.host_version)
        args.append(f"--msvs_version={msvs_version}")

    return args


def build_env_for(config: BuildConfig) -> dict[str, str]:
    """Variables consumed by the gyp files; layered over os.environ for the child only."""
    if config.platform == "win32":
        toolset, msvs_version = msvs_toolset_for(config.host_version)
        return {"msvs_toolset": str(toolset), "msvs_version": str(msvs_version)}

    return {
        "gyp_iohook_runtime": config.runtime,
        "gyp_iohook_abi": str(config.abi),
        "gyp_iohook_platform": config.platform,
        "gyp_iohook_arch": config.arch,
    }


def node_gyp_path(root: Path, platform: str) -> Path:
    exe = "node-gyp.cmd" if platform == "win32" else "node-gyp"
    return root / "node_modules" / ".bin" / exe


def mk_env_for(env_ext=None) -> dict[str, str]:
    env = os.environ.copy()
    if env_ext is not None:
        env = {**env, **env_ext}

    return env


RunSpec: TypeAlias = str | Sequence[str | os.PathLike[str]]


def shellize(cmd: RunSpec) -> str:
    if isinstance(cmd, str):
        return cmd
    else:
        return " ".join(shlex.quote(str(x)) for x in cmd)


def common_helper_for_run(cmd: RunSpec, cmd_cwd: Path | str | None = None):
    if os.environ.get("IOHOOK_SHOW_CMDS", "0") == "0":
        return

    if cmd_cwd is None:
        click.echo(f": {shellize(cmd)}")
    else:
        click.echo(f": ( cd {Path(cmd_cwd).as_posix()} ; {shellize(cmd)} )")


def run(cmd: RunSpec, check=False, env_ext=None, **kwargs) -> subprocess.CompletedProcess:
    common_helper_for_run(cmd, kwargs.get("cwd", None))

    return subprocess.run(
        cmd,
        check=check,
        env=mk_env_for(env_ext),
        **kwargs,
    )


def build(config: BuildConfig, root: Path, strict_exit_codes: bool = False) -> None:
    """Compiles the add-on in `root` with node-gyp.

    Output is not captured, so the compiler's chatter reaches the terminal as-is.

    Only an exit code of exactly 1 counts as failure, which is what node-gyp
    uses for its own errors. A toolchain killed by a signal, or exiting with
    some other code, is therefore treated as success. `strict_exit_codes`
    makes every non-zero code an error instead.
    """
    install_build_definition(root, config.platform)
    cmd = [str(node_gyp_path(root, config.platform)), *synthesize_build_args(config)]

    sez(f"Compiling iohook for {config.runtime} v{config.host_version}...", ctx="(build) ")
    cp = run(cmd, cwd=root, env_ext=build_env_for(config))

    if cp.returncode == 1 or (strict_exit_codes and cp.returncode != 0):
        raise BuildError(cp.returncode, cmd)
