import configparser
import os
from dataclasses import dataclass
from pathlib import Path

from iohook_provision.reporting import sez


@dataclass(frozen=True)
class DownloadSettings:
    proxy: str | None = None
    strict_ssl: bool = True


def npmrc_search_path(cwd: Path | None = None) -> list[Path]:
    """Candidate npmrc files, lowest priority first."""
    home = Path.home()
    paths = [
        Path("/etc/npmrc"),
        home / ".config" / "npm" / "config",
        home / ".npm" / "config",
        Path(os.environ.get("npm_config_userconfig", home / ".npmrc")),
    ]
    here = (cwd or Path.cwd()).resolve()
    # Nearest project .npmrc wins, so farther ones go first.
    paths.extend(reversed([d / ".npmrc" for d in [here, *here.parents]]))
    return paths


def unquote(value: str | None) -> str:
    # A bare key is a boolean switched on.
    if value is None:
        return "true"
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_npmrc(text: str) -> dict[str, str]:
    # npmrc is INI without a mandatory leading section.
    parser = configparser.ConfigParser(
        delimiters=("=",), interpolation=None, strict=False, allow_no_value=True
    )
    parser.read_string("[npmrc]\n" + text)
    merged: dict[str, str] = {}
    for section in parser.sections():
        for key, value in parser[section].items():
            merged[key] = unquote(value)
    return merged


def read_npm_config(paths: list[Path], environ=None) -> dict[str, str]:
    """Merges npmrc files (later ones win) and then npm_config_* variables.

    A file that cannot be read or parsed is reported and skipped; the
    remaining files and the environment still apply.
    """
    if environ is None:
        environ = os.environ

    config: dict[str, str] = {}
    for path in paths:
        if not path.is_file():
            continue
        try:
            config.update(parse_npmrc(path.read_text(encoding="utf-8")))
        except (configparser.Error, OSError, UnicodeDecodeError) as e:
            sez(f"Error reading npm configuration {path}: {e}", ctx="(npmrc) ", err=True)

    # npm exports its effective config to lifecycle scripts as npm_config_*.
    for key, value in environ.items():
        if key.lower().startswith("npm_config_"):
            name = key[len("npm_config_") :].lower().replace("_", "-")
            config[name] = value
    return config


def as_bool(value: str) -> bool | None:
    match value.strip().lower():
        case "true" | "1" | "yes":
            return True
        case "false" | "0" | "no":
            return False
        case _:
            return None


def download_settings_from_npm(paths: list[Path] | None = None, environ=None) -> DownloadSettings:
    """Proxy and TLS settings as npm would apply them.

    Unreadable config is not worth failing an install over; bad files are
    skipped with a warning, and with nothing usable we go without a proxy,
    with TLS verification on.
    """
    if paths is None:
        paths = npmrc_search_path()

    npmrc = read_npm_config(paths, environ)

    proxy = None
    if npmrc.get("proxy"):
        proxy = npmrc["proxy"]
    if npmrc.get("https-proxy"):
        proxy = npmrc["https-proxy"]

    strict_ssl = as_bool(npmrc.get("strict-ssl", "true")) is not False

    return DownloadSettings(proxy=proxy, strict_ssl=strict_ssl)
