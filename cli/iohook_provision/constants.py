# (runtime, version, abi) triples that we publish prebuilds for.
# Keep in sync with the release workflow; `npm_config_targets=all` expands to these.
SUPPORTED_TARGETS: list[tuple[str, str, int]] = [
    ("node", "12.0.0", 72),
    ("node", "13.0.0", 79),
    ("node", "14.0.0", 83),
    ("node", "15.0.0", 88),
    ("node", "16.0.0", 93),
    ("node", "17.0.1", 102),
    ("node", "18.0.0", 108),
    ("electron", "8.0.0", 76),
    ("electron", "9.0.0", 80),
    ("electron", "10.0.0", 82),
    ("electron", "11.0.0", 85),
    ("electron", "12.0.0", 87),
    ("electron", "13.0.0", 89),
    ("electron", "14.0.0", 97),
    ("electron", "15.0.0", 98),
    ("electron", "16.0.0", 99),
    ("electron", "17.0.0", 101),
    ("electron", "18.0.0", 103),
    ("electron", "19.0.0", 106),
    ("electron", "20.0.0", 107),
    ("electron", "21.0.0", 109),
    ("electron", "22.0.0", 110),
]

# Electron major version -> NODE_MODULE_VERSION.
# Note: 25 and 26 share an ABI.
ELECTRON_ABIS: dict[int, int] = {
    3: 64,
    4: 69,
    5: 70,
    6: 73,
    7: 75,
    8: 76,
    9: 80,
    10: 82,
    11: 85,
    12: 87,
    13: 89,
    14: 97,
    15: 98,
    16: 99,
    17: 101,
    18: 103,
    19: 106,
    20: 107,
    21: 109,
    22: 110,
    23: 113,
    24: 114,
    25: 116,
    26: 116,
    27: 118,
    28: 119,
    29: 121,
    30: 123,
    31: 125,
    32: 128,
}

ALL_PLATFORMS = ["win32", "darwin", "linux"]
ALL_ARCHES = ["x64", "ia32"]

# Everything `node-gyp rebuild` must leave behind before we can package a prebuild.
# Paths are relative to the install root, and are stored that way in the archive.
FILES_TO_ARCHIVE: dict[str, list[str]] = {
    "win32": ["build/Release/iohook.node", "build/Release/uiohook.dll"],
    "linux": ["build/Release/iohook.node", "build/Release/uiohook.so"],
    "darwin": ["build/Release/iohook.node", "build/Release/uiohook.dylib"],
}

BINARY_EXTENSION = ".node"

DEFAULT_DOWNLOAD_BASE_URL = "https://github.com/intermedia-net/iohook/releases/download"

ELECTRON_DIST_URL = "https://atom.io/download/electron"

# Both the downloaded and the locally packaged archive land here, inside tempfile.gettempdir().
PREBUILD_ARCHIVE_NAME = "prebuild.tar.gz"

# Key within the consuming app's package.json holding targets/platforms/arches.
PACKAGE_OPTIONS_KEY = "iohook"
