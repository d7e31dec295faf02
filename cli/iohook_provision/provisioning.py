from pathlib import Path
import enum
import shutil
from dataclasses import dataclass
from typing import Callable

from iohook_provision import downloads
from iohook_provision import hermetic
from iohook_provision import prebuilds
from iohook_provision import repo_root
from iohook_provision import targets
from iohook_provision.errors import DownloadError
from iohook_provision.npm_config import DownloadSettings, download_settings_from_npm
from iohook_provision.reporting import sez
from iohook_provision.targets import BuildMatrix, HostRuntime, TargetTuple


class Outcome(enum.Enum):
    FETCHED_REMOTE = "fetched-remote"
    COMPILED_LOCALLY = "compiled-locally"


@dataclass
class ProvisioningResult:
    target: TargetTuple
    outcome: Outcome
    installed: prebuilds.InstalledArchive


@dataclass
class ProvisioningContext:
    """Everything a provisioning run needs beyond the target itself."""

    root: Path
    pkg_name: str
    pkg_version: str
    host: HostRuntime
    settings: DownloadSettings
    base_url: str
    archive_path: Path
    strict_exit_codes: bool = False

    @property
    def builds_dir(self) -> Path:
        return self.root / "builds"

    def url_for(self, target: TargetTuple) -> str:
        return downloads.prebuild_url(
            self.base_url, self.pkg_name, self.pkg_version, target.essential
        )


def mk_context(
    root: Path,
    base_url: str,
    host: HostRuntime | None = None,
    settings: DownloadSettings | None = None,
    archive_path: Path | None = None,
    strict_exit_codes: bool = False,
) -> ProvisioningContext:
    pkg = repo_root.read_package_json(root)
    return ProvisioningContext(
        root=root,
        pkg_name=pkg["name"],
        pkg_version=pkg["version"],
        host=host if host is not None else targets.query_host_runtime(),
        settings=settings if settings is not None else download_settings_from_npm(),
        base_url=base_url,
        archive_path=archive_path if archive_path is not None else downloads.default_archive_path(),
        strict_exit_codes=strict_exit_codes,
    )


def build_and_package(target: TargetTuple, ctx: ProvisioningContext) -> Path:
    """Compiles for `target` on this machine and packs the result into ctx.archive_path.

    We always compile against the host's node version and platform, whatever
    the target tuple says. A cross-target request that misses on download thus
    yields a host build stored under the requested name.
    """
    host_platform = targets.host_platform()
    config = hermetic.BuildConfig(
        runtime=target.runtime,
        host_version=ctx.host.node_version,
        abi=target.abi,
        arch=target.arch,
        platform=host_platform,
    )
    hermetic.build(config, ctx.root, strict_exit_codes=ctx.strict_exit_codes)
    prebuilds.package_build_outputs(ctx.root, host_platform, ctx.archive_path)
    return ctx.archive_path


def remove_build_leftovers(root: Path) -> None:
    for name in ["build", "prebuilds"]:
        if (root / name).exists():
            shutil.rmtree(root / name)


def install_into_builds(
    target: TargetTuple, ctx: ProvisioningContext
) -> prebuilds.InstalledArchive:
    # Only one target's artifacts live under builds/ at a time.
    if ctx.builds_dir.exists():
        shutil.rmtree(ctx.builds_dir)
    ctx.builds_dir.mkdir(parents=True)
    return prebuilds.install_archive(ctx.archive_path, ctx.builds_dir / target.essential)


def provision_target(target: TargetTuple, ctx: ProvisioningContext) -> ProvisioningResult:
    def say(msg: str, err=False):
        sez(msg, ctx="(provision) ", err=err)

    stem = target.archive_stem(ctx.pkg_name, ctx.pkg_version)
    say(f"Downloading prebuild for platform: {stem}")

    outcome = Outcome.FETCHED_REMOTE
    try:
        downloads.download_prebuild(ctx.url_for(target), ctx.settings, ctx.archive_path)
    except DownloadError as e:
        if not e.is_not_found:
            raise

        say(f"Prebuild for current platform ({stem}) not found!", err=True)
        say("Trying to compile for your platform.", err=True)
        build_and_package(target, ctx)
        remove_build_leftovers(ctx.root)
        outcome = Outcome.COMPILED_LOCALLY

    installed = install_into_builds(target, ctx)
    if installed.binary is not None:
        say(f"Installed {installed.binary} for {target.essential}")
    return ProvisioningResult(target=target, outcome=outcome, installed=installed)


def provision_matrix(
    matrix: BuildMatrix,
    ctx: ProvisioningContext,
    on_complete: Callable[[ProvisioningResult], None] | None = None,
) -> list[ProvisioningResult]:
    """Provisions each target in order, one at a time.

    Targets share the build/ tree and the active binding.gyp, so a target must
    be completely done before the next one starts. The first error ends the run.
    """
    results = []
    for target in matrix:
        sez(f"{target.runtime} {target.abi} {target.platform} {target.arch}", ctx="(provision) ")
        result = provision_target(target, ctx)
        if on_complete is not None:
            on_complete(result)
        results.append(result)
    return results
