class ProvisioningError(Exception):
    pass


class TargetSpecError(ProvisioningError, ValueError):
    pass


class InstallRootError(ProvisioningError, FileNotFoundError):
    pass


class DownloadError(ProvisioningError):
    """A prebuild could not be fetched.

    `status_code` is the HTTP status, or None when the request never got a
    response (DNS, TLS, connection reset, ...).
    """

    def __init__(self, url: str, status_code: int | None, reason: str):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is None:
            super().__init__(f"Failed to download {url}: {reason}")
        else:
            super().__init__(f"Failed to download {url}: {status_code} {reason}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class BuildError(ProvisioningError):
    def __init__(self, returncode: int, cmd: list[str]):
        self.returncode = returncode
        self.cmd = cmd
        super().__init__(f"Failed to build (node-gyp exited with code {returncode})")


class PackagingError(ProvisioningError):
    pass
