import tempfile
from pathlib import Path

import requests

from iohook_provision import constants
from iohook_provision.errors import DownloadError
from iohook_provision.npm_config import DownloadSettings
from iohook_provision.reporting import sez


def default_archive_path() -> Path:
    return Path(tempfile.gettempdir(), constants.PREBUILD_ARCHIVE_NAME)


def prebuild_url(base_url: str, pkg_name: str, pkg_version: str, essential: str) -> str:
    return f"{base_url.rstrip('/')}/v{pkg_version}/{pkg_name}-v{pkg_version}-{essential}.tar.gz"


def download_prebuild(url: str, settings: DownloadSettings, filename: Path | None = None) -> Path:
    """Downloads `url` to `filename` (default: the shared prebuild archive path).

    Raises DownloadError; callers decide what a 404 means for them.
    There are no retries and no timeout, the transfer runs until it finishes or fails.
    """
    if filename is None:
        filename = default_archive_path()

    proxies = None
    if settings.proxy:
        proxies = {"http": settings.proxy, "https": settings.proxy}

    sez(f"Downloading {url}", ctx="(download) ")
    filename.parent.mkdir(parents=True, exist_ok=True)
    try:
        response = requests.get(url, stream=True, proxies=proxies, verify=settings.strict_ssl)
        with response:
            response.raise_for_status()
            with open(filename, "wb") as f:
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    f.write(chunk)
    except requests.exceptions.HTTPError as e:
        filename.unlink(missing_ok=True)
        raise DownloadError(url, e.response.status_code, e.response.reason or "") from e
    except requests.exceptions.RequestException as e:
        filename.unlink(missing_ok=True)
        raise DownloadError(url, None, str(e)) from e

    return filename
