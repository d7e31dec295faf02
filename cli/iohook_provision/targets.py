import json
import os
import platform
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, TypeAlias, TypeVar

from packaging.version import InvalidVersion, Version

from iohook_provision import constants
from iohook_provision import repo_root
from iohook_provision.errors import TargetSpecError

"""
A single `install` may provision prebuilds for many runtimes and platforms
(for instance when an Electron app is packaged for every OS from one machine).
What to provision is the build matrix: an ordered list of target tuples.

The order matters. Tuples are provisioned one at a time, and the first
failure aborts the run, so the same configuration must always yield the
same sequence.
"""


@dataclass(frozen=True)
class TargetTuple:
    runtime: str
    abi: int
    platform: str
    arch: str

    @property
    def essential(self) -> str:
        return f"{self.runtime}-v{self.abi}-{self.platform}-{self.arch}"

    def archive_stem(self, pkg_name: str, pkg_version: str) -> str:
        return f"{pkg_name}-v{pkg_version}-{self.essential}"


BuildMatrix: TypeAlias = tuple[TargetTuple, ...]


@dataclass(frozen=True)
class HostRuntime:
    """The node that is running the install, as reported by node itself."""

    node_version: str
    modules_abi: int


@dataclass
class MatrixOptions:
    # (runtime, abi) pairs, already parsed.
    targets: list[tuple[str, int]] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    arches: list[str] = field(default_factory=list)


# See https://nodejs.org/api/process.html#processarch
def host_arch(machine: str | None = None) -> str:
    x: dict[str, str] = {}
    for src in "amd64 AMD64 x64 x86_64".split():
        x[src] = "x64"

    for src in "i386 i486 i586 i686 x86 ia32".split():
        x[src] = "ia32"

    for src in "arm64 ARM64 aarch64 armv8l".split():
        x[src] = "arm64"

    for src in "armv6l armv7l arm".split():
        x[src] = "arm"

    m = machine if machine is not None else platform.machine()
    return x.get(m, m)


def host_platform() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def query_host_runtime(environ: Mapping[str, str] | None = None) -> HostRuntime:
    if environ is None:
        environ = os.environ

    # npm tells lifecycle scripts which node binary it is running under.
    node = environ.get("npm_node_execpath", "node")
    out = subprocess.check_output(
        [
            node,
            "-p",
            "JSON.stringify({node: process.versions.node, modules: process.versions.modules})",
        ],
        text=True,
    )
    versions = json.loads(out)
    return HostRuntime(node_version=versions["node"], modules_abi=int(versions["modules"]))


def electron_abi_for(version: str) -> int:
    try:
        major = Version(version).major
    except InvalidVersion:
        raise TargetSpecError(f"Cannot parse Electron version '{version}'")

    if major not in constants.ELECTRON_ABIS:
        raise TargetSpecError(f"No known ABI for Electron {version}")
    return constants.ELECTRON_ABIS[major]


def parse_target_spec(spec: str) -> tuple[str, int]:
    """Parses one `runtime-abi` string, e.g. `electron-80`."""
    runtime, sep, abi = spec.strip().partition("-")
    if not sep or not runtime or not abi.isdigit():
        raise TargetSpecError(f"Invalid target '{spec}', expected <runtime>-<abi>")
    return runtime, int(abi)


def split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


T = TypeVar("T")


def dedup(items: list[T]) -> list[T]:
    return list(dict.fromkeys(items))


def option_list(value) -> list[str]:
    """`targets`, `platforms` and `arches` may be a JSON list or a comma-separated string."""
    if isinstance(value, str):
        return split_list(value)
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def options_from_package(root: Path) -> MatrixOptions:
    """Reads the `iohook` block of the depending app's package.json, if any."""
    main_package_json = repo_root.find_main_package_json(root)
    if main_package_json is None:
        return MatrixOptions()

    try:
        with open(main_package_json, "r", encoding="utf-8") as f:
            opts = json.load(f).get(constants.PACKAGE_OPTIONS_KEY) or {}
    except (OSError, json.JSONDecodeError, AttributeError):
        return MatrixOptions()
    if not isinstance(opts, dict):
        return MatrixOptions()

    return MatrixOptions(
        targets=[parse_target_spec(t) for t in option_list(opts.get("targets"))],
        platforms=option_list(opts.get("platforms")),
        arches=option_list(opts.get("arches")),
    )


def expand_matrix(
    targets: list[tuple[str, int]], platforms: list[str], arches: list[str]
) -> BuildMatrix:
    matrix = []
    for runtime, abi in targets:
        for plat in platforms:
            for arch in arches:
                # There are no 32-bit macOS builds of node or electron.
                if plat == "darwin" and arch == "ia32":
                    continue
                matrix.append(TargetTuple(runtime, abi, plat, arch))
    return tuple(matrix)


def host_target(root: Path, host: HostRuntime) -> TargetTuple:
    electron_dir = root.parent / "electron"
    if electron_dir.is_dir():
        electron_pkg = repo_root.read_package_json(electron_dir)
        return TargetTuple(
            "electron", electron_abi_for(electron_pkg["version"]), host_platform(), host_arch()
        )
    return TargetTuple("node", host.modules_abi, host_platform(), host_arch())


def resolve_build_matrix(
    root: Path,
    host: HostRuntime,
    options: MatrixOptions | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildMatrix:
    if options is None:
        options = options_from_package(root)
    if environ is None:
        environ = os.environ

    env_targets = environ.get("npm_config_targets", "")
    if env_targets.strip() == "all":
        targets = dedup([(runtime, abi) for runtime, _version, abi in constants.SUPPORTED_TARGETS])
        return expand_matrix(targets, constants.ALL_PLATFORMS, constants.ALL_ARCHES)

    targets = dedup(options.targets + [parse_target_spec(t) for t in split_list(env_targets)])
    if not targets:
        return (host_target(root, host),)

    # An explicit list from the environment replaces the host default rather than extending it.
    platforms = dedup(options.platforms + split_list(environ.get("npm_config_platforms")))
    arches = dedup(options.arches + split_list(environ.get("npm_config_arches")))
    return expand_matrix(targets, platforms or [host_platform()], arches or [host_arch()])
