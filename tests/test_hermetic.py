import json
import os

import pytest

from iohook_provision import hermetic
from iohook_provision.errors import BuildError
from iohook_provision.hermetic import BuildConfig


def mk_config(**overrides) -> BuildConfig:
    fields = dict(runtime="node", host_version="18.12.1", abi=108, arch="x64", platform="linux")
    fields.update(overrides)
    return BuildConfig(**fields)


def test_base_args():
    args = hermetic.synthesize_build_args(mk_config(abi=57))
    assert args == ["configure", "rebuild", "--target=18.12.1", "--arch=x64"]


def test_pointer_compression_on_64_bit():
    args = hermetic.synthesize_build_args(mk_config(abi=80, arch="x64"))
    assert "--v8_enable_pointer_compression=1" in args
    assert "--v8_enable_pointer_compression=0" not in args
    assert "--v8_enable_31bit_smis_on_64bit_arch=1" not in args


def test_pointer_compression_off_elsewhere():
    args = hermetic.synthesize_build_args(mk_config(abi=80, arch="ia32"))
    assert "--v8_enable_pointer_compression=0" in args
    assert "--v8_enable_31bit_smis_on_64bit_arch=1" in args
    assert "--v8_enable_pointer_compression=1" not in args


def test_no_pointer_compression_flags_below_abi_80():
    args = hermetic.synthesize_build_args(mk_config(abi=79, arch="ia32"))
    assert not [a for a in args if "pointer_compression" in a or "31bit" in a]


def test_full_args_for_node_108_linux_x64():
    assert hermetic.synthesize_build_args(mk_config()) == [
        "configure",
        "rebuild",
        "--target=18.12.1",
        "--arch=x64",
        "--v8_enable_pointer_compression=1",
        "--build_v8_with_gn=false",
        "--enable_lto=false",
    ]


def test_gn_and_lto_thresholds_off_windows():
    assert "--build_v8_with_gn=false" not in hermetic.synthesize_build_args(mk_config(abi=63))
    args = hermetic.synthesize_build_args(mk_config(abi=64))
    assert "--build_v8_with_gn=false" in args
    assert "--enable_lto=false" not in args
    assert "--enable_lto=false" in hermetic.synthesize_build_args(mk_config(abi=67))


def test_electron_gets_dist_url():
    args = hermetic.synthesize_build_args(mk_config(runtime="Electron", abi=76))
    assert "--dist-url=https://atom.io/download/electron" in args
    args = hermetic.synthesize_build_args(mk_config(runtime="node", abi=76))
    assert not [a for a in args if a.startswith("--dist-url")]


@pytest.mark.parametrize(
    "host_version,toolset,msvs",
    [("3.1.0", 12, 2013), ("0.12.18", 12, 2013), ("4.0.0", 15, 2017), ("18.12.1", 15, 2017)],
)
def test_windows_toolset_by_host_major(host_version, toolset, msvs):
    assert hermetic.msvs_toolset_for(host_version) == (toolset, msvs)

    config = mk_config(platform="win32", host_version=host_version, abi=108)
    args = hermetic.synthesize_build_args(config)
    assert f"--msvs_version={msvs}" in args
    assert "--build_v8_with_gn=false" not in args
    assert "--enable_lto=false" not in args
    assert hermetic.build_env_for(config) == {
        "msvs_toolset": str(toolset),
        "msvs_version": str(msvs),
    }


def test_build_env_off_windows():
    config = mk_config(runtime="electron", abi=80, arch="ia32", platform="darwin")
    assert hermetic.build_env_for(config) == {
        "gyp_iohook_runtime": "electron",
        "gyp_iohook_abi": "80",
        "gyp_iohook_platform": "darwin",
        "gyp_iohook_arch": "ia32",
    }


@pytest.mark.parametrize(
    "platform,variant",
    [("win32", "win32"), ("darwin", "darwin"), ("linux", "linux"), ("freebsd", "linux")],
)
def test_select_build_definition(addon_root, platform, variant):
    expected = addon_root / "build_def" / variant
    assert hermetic.select_build_definition(addon_root, platform) == expected


def test_install_build_definition_replaces_previous(addon_root):
    (addon_root / "binding.gyp").write_text("stale", encoding="utf-8")
    hermetic.install_build_definition(addon_root, "darwin")
    assert (addon_root / "binding.gyp").read_text(encoding="utf-8") == "# binding for darwin\n"
    assert (addon_root / "uiohook.gyp").read_text(encoding="utf-8") == "# uiohook for darwin\n"

    hermetic.install_build_definition(addon_root, "sunos")
    assert (addon_root / "binding.gyp").read_text(encoding="utf-8") == "# binding for linux\n"


def test_node_gyp_path(addon_root):
    assert hermetic.node_gyp_path(addon_root, "win32").name == "node-gyp.cmd"
    bindir = addon_root / "node_modules" / ".bin"
    assert hermetic.node_gyp_path(addon_root, "linux") == bindir / "node-gyp"


def test_build_runs_node_gyp_with_synthesized_args(addon_root, fake_node_gyp):
    log = fake_node_gyp(code=0)
    config = mk_config()
    hermetic.build(config, addon_root)

    invocation = json.loads(log.read_text(encoding="utf-8"))
    assert invocation["argv"] == hermetic.synthesize_build_args(config)
    assert os.path.samefile(invocation["cwd"], addon_root)
    assert invocation["env"]["gyp_iohook_abi"] == "108"
    assert invocation["env"]["gyp_iohook_runtime"] == "node"
    # The settings are handed to the child only.
    assert "gyp_iohook_abi" not in os.environ
    assert (addon_root / "binding.gyp").read_text(encoding="utf-8") == "# binding for linux\n"
    assert (addon_root / "build" / "Release" / "iohook.node").is_file()


def test_build_exit_code_1_is_a_failure(addon_root, fake_node_gyp):
    fake_node_gyp(code=1)
    with pytest.raises(BuildError) as excinfo:
        hermetic.build(mk_config(), addon_root)
    assert excinfo.value.returncode == 1


def test_build_exit_code_2_counts_as_success(addon_root, fake_node_gyp):
    # Only 1 is an error; other codes have always passed and callers may rely on that.
    fake_node_gyp(code=2)
    hermetic.build(mk_config(), addon_root)


def test_build_exit_code_2_fails_with_strict_exit_codes(addon_root, fake_node_gyp):
    fake_node_gyp(code=2)
    with pytest.raises(BuildError) as excinfo:
        hermetic.build(mk_config(), addon_root, strict_exit_codes=True)
    assert excinfo.value.returncode == 2


def test_build_exit_code_0_passes_with_strict_exit_codes(addon_root, fake_node_gyp):
    fake_node_gyp(code=0)
    hermetic.build(mk_config(), addon_root, strict_exit_codes=True)


def test_show_cmds(addon_root, fake_node_gyp, monkeypatch, capsys):
    fake_node_gyp(code=0)
    monkeypatch.setenv("IOHOOK_SHOW_CMDS", "1")
    hermetic.build(mk_config(), addon_root)
    assert "node-gyp configure rebuild --target=18.12.1" in capsys.readouterr().out
