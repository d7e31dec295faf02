import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path

from iohook_provision import constants
from iohook_provision.errors import PackagingError
from iohook_provision.reporting import sez


def archive_manifest(platform: str) -> list[str]:
    try:
        return constants.FILES_TO_ARCHIVE[platform]
    except KeyError:
        raise PackagingError(f"Don't know which build outputs to package for {platform}")


def package_build_outputs(root: Path, platform: str, archive_path: Path) -> Path:
    """Packs the freshly built binaries for `platform` into a gzipped tarball.

    Entries keep their root-relative names (build/Release/...), matching the
    layout of the archives we publish.
    """
    members = archive_manifest(platform)
    missing = [m for m in members if not (root / m).is_file()]
    if missing:
        raise PackagingError(f"Build outputs missing, cannot package: {', '.join(missing)}")

    (root / "prebuilds").mkdir(exist_ok=True)
    archive_path.parent.mkdir(parents=True, exist_ok=True)

    with tarfile.open(archive_path, "w:gz") as tar:
        for member in members:
            tar.add(root / member, arcname=member)

    sez(f"Packaged {len(members)} files into {archive_path}", ctx="(package) ")
    return archive_path


@dataclass
class InstalledArchive:
    dest: Path
    members: list[str]
    # Archive-relative name of the add-on binary, if the archive had one.
    binary: str | None

    @property
    def binary_path(self) -> Path | None:
        if self.binary is None:
            return None
        return self.dest / self.binary


def install_archive(archive_path: Path, dest: Path) -> InstalledArchive:
    """Extracts `archive_path` into a freshly emptied `dest`.

    Hard links in the archive are extracted as copies when the filesystem
    refuses to create them; tarfile does that for us when os.link fails.
    """
    if dest.exists():
        shutil.rmtree(dest)
    dest.mkdir(parents=True)

    members: list[str] = []
    binary = None
    with tarfile.open(archive_path, "r:gz") as tar:
        for entry in tar:
            members.append(entry.name)
            if entry.name.lower().endswith(constants.BINARY_EXTENSION):
                binary = entry.name
        tar.extractall(path=dest, filter="data")

    sez(f"Extracted {len(members)} entries into {dest}", ctx="(install) ")
    return InstalledArchive(dest=dest, members=members, binary=binary)
