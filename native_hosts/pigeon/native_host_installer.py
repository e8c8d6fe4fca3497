from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path

HOST_NAME = "pigeon"
WRAPPER_NAME = "pigeon-host"
_LOGGER = logging.getLogger("pigeon.native_host_installer")
_EXT_ID_RE = re.compile(r"^[a-p]{32}$")
_EXT_NAME_HINTS = {"Pigeon"}

DEFAULT_CONFIG_TEXT = "# tmux session name (default: claude)\n# tmux_target=claude\n"


@dataclass(frozen=True, slots=True)
class InstallTarget:
    label: str
    path: Path


@dataclass(slots=True)
class InstallReport:
    ok: bool = False
    wrote: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    manifest_path: str | None = None
    config_path: str | None = None


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _normalize_ext_id(raw: str) -> str | None:
    candidate = str(raw or "").strip().lower()
    if _EXT_ID_RE.match(candidate):
        return candidate
    return None


def _user_data_roots(platform: str, home: Path) -> list[Path]:
    if platform == "darwin":
        base = home / "Library" / "Application Support"
        return [
            base / "Google" / "Chrome",
            base / "Google" / "Chrome Beta",
            base / "Chromium",
            base / "BraveSoftware" / "Brave-Browser",
            base / "Microsoft Edge",
        ]
    if platform.startswith("linux"):
        cfg = home / ".config"
        return [
            cfg / "google-chrome",
            cfg / "google-chrome-beta",
            cfg / "chromium",
            cfg / "BraveSoftware" / "Brave-Browser",
            cfg / "microsoft-edge",
        ]
    return []


def _profile_pref_files(root: Path) -> list[Path]:
    out: list[Path] = []
    for name in ["Default", "Profile *"]:
        for profile in sorted(root.glob(name)):
            for pref in ["Preferences", "Secure Preferences"]:
                candidate = profile / pref
                if candidate.exists():
                    out.append(candidate)
    return out


def discover_installed_extension_ids(*, platform: str | None = None, home: Path | None = None) -> list[str]:
    """Find ids of an unpacked Pigeon extension in Chrome-family profiles."""
    platform = platform or sys.platform
    home = home or Path.home()
    found: set[str] = set()
    for base in _user_data_roots(platform, home):
        if not base.exists():
            continue
        for pref in _profile_pref_files(base):
            try:
                data = json.loads(pref.read_text(encoding="utf-8", errors="replace"))
            except Exception:
                continue
            extensions = data.get("extensions") if isinstance(data, dict) else None
            settings = extensions.get("settings") if isinstance(extensions, dict) else None
            if not isinstance(settings, dict):
                continue
            for ext_id, entry in settings.items():
                norm = _normalize_ext_id(ext_id)
                if not norm or not isinstance(entry, dict):
                    continue
                manifest = entry.get("manifest")
                name = str(manifest.get("name") or "").strip() if isinstance(manifest, dict) else ""
                if name in _EXT_NAME_HINTS:
                    found.add(norm)
    return sorted(found)


def _wrapper_path(root: Path, *, venv_dir: Path | None = None) -> Path:
    venv_dir = venv_dir or (root / ".venv")
    if venv_dir.exists():
        return venv_dir / "bin" / WRAPPER_NAME
    return root / ".native-host" / WRAPPER_NAME


def _write_wrapper(path: Path, *, python_exe: str, root: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    content = "\n".join(
        [
            "#!/usr/bin/env bash",
            "set -euo pipefail",
            f'ROOT="{root}"',
            'export PYTHONPATH="$ROOT:${PYTHONPATH:-}"',
            f'exec "{python_exe}" -m native_hosts.pigeon.native_host',
            "",
        ]
    )
    path.write_text(content, encoding="utf-8")
    path.chmod(0o755)


def _targets_for_platform(platform: str, home: Path) -> list[InstallTarget]:
    if platform == "darwin":
        base = home / "Library" / "Application Support"
        return [
            InstallTarget("chrome", base / "Google" / "Chrome" / "NativeMessagingHosts"),
            InstallTarget("chrome-beta", base / "Google" / "Chrome Beta" / "NativeMessagingHosts"),
            InstallTarget("chromium", base / "Chromium" / "NativeMessagingHosts"),
            InstallTarget("brave", base / "BraveSoftware" / "Brave-Browser" / "NativeMessagingHosts"),
            InstallTarget("edge", base / "Microsoft Edge" / "NativeMessagingHosts"),
        ]
    if platform.startswith("linux"):
        cfg = home / ".config"
        return [
            InstallTarget("chrome", cfg / "google-chrome" / "NativeMessagingHosts"),
            InstallTarget("chrome-beta", cfg / "google-chrome-beta" / "NativeMessagingHosts"),
            InstallTarget("chromium", cfg / "chromium" / "NativeMessagingHosts"),
            InstallTarget("brave", cfg / "BraveSoftware" / "Brave-Browser" / "NativeMessagingHosts"),
            InstallTarget("edge", cfg / "microsoft-edge" / "NativeMessagingHosts"),
        ]
    return []


def _write_manifest(path: Path, manifest: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    with contextlib.suppress(Exception):
        path.chmod(0o644)


def ensure_default_config(config_dir: Path) -> tuple[Path, bool]:
    """Create the config file with commented defaults unless it already exists."""
    config_path = config_dir / "config"
    if config_path.exists():
        return config_path, False
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")
    return config_path, True


def install_native_host(
    extension_ids: list[str] | None = None,
    *,
    root: Path | None = None,
    python_exe: str | None = None,
    platform: str | None = None,
    home: Path | None = None,
) -> InstallReport:
    report = InstallReport()
    root = root or _repo_root()
    platform = platform or sys.platform
    home = home or Path.home()
    python_exe = python_exe or sys.executable

    targets = _targets_for_platform(platform, home)
    if not targets:
        report.errors.append(f"unsupported platform for installer: {platform}")
        return report

    ids: list[str] = []
    for raw in extension_ids or []:
        norm = _normalize_ext_id(raw)
        if norm is None:
            report.errors.append(f"invalid extension id: {raw!r}")
            continue
        if norm not in ids:
            ids.append(norm)
    for norm in discover_installed_extension_ids(platform=platform, home=home):
        if norm not in ids:
            ids.append(norm)
    if not ids:
        report.errors.append("no extension id given or discovered (copy it from chrome://extensions)")
        return report

    wrapper = _wrapper_path(root)
    try:
        _write_wrapper(wrapper, python_exe=python_exe, root=root)
    except Exception as exc:  # noqa: BLE001
        report.errors.append(f"failed to create native host wrapper: {exc}")
        return report

    host_manifest = {
        "name": HOST_NAME,
        "description": "Bridge between Pigeon extension and tmux",
        "path": str(wrapper),
        "type": "stdio",
        "allowed_origins": [f"chrome-extension://{ext_id}/" for ext_id in ids],
    }

    out_name = f"{HOST_NAME}.json"
    wrote_any = False
    for target in targets:
        try:
            out_path = target.path / out_name
            _write_manifest(out_path, host_manifest)
            report.wrote.append(f"{target.label}:{out_path}")
            wrote_any = True
        except Exception as exc:  # noqa: BLE001
            report.errors.append(f"{target.label}: failed to install: {exc}")

    config_dir = Path(os.environ.get("PIGEON_CONFIG_DIR") or (home / ".config" / "pigeon")).expanduser()
    try:
        config_path, created = ensure_default_config(config_dir)
        report.config_path = str(config_path)
        if created:
            report.wrote.append(f"config:{config_path}")
    except Exception as exc:  # noqa: BLE001
        report.errors.append(f"failed to create config file: {exc}")

    report.ok = wrote_any
    report.manifest_path = str(wrapper)
    return report


def main(argv: list[str] | None = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(
        prog="pigeon-install-native-host",
        description="Register the Pigeon native messaging host with Chrome-family browsers.",
    )
    parser.add_argument(
        "--extension-id",
        action="append",
        default=[],
        help="Pigeon extension id from chrome://extensions (repeatable)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s", stream=sys.stderr)

    env_ids = os.environ.get("PIGEON_EXTENSION_IDS") or ""
    ids = list(args.extension_id) + [s.strip() for s in env_ids.split(",") if s.strip()]
    report = install_native_host(ids)
    for line in report.wrote:
        _LOGGER.info("installed %s", line)
    for err in report.errors:
        _LOGGER.warning("%s", err)
    if not report.ok:
        _LOGGER.error("native_host_install_failed")
        return 1
    _LOGGER.info("native_host_install_ok wrapper=%s (restart the browser to pick it up)", report.manifest_path)
    return 0


__all__ = [
    "HOST_NAME",
    "InstallReport",
    "InstallTarget",
    "discover_installed_extension_ids",
    "ensure_default_config",
    "install_native_host",
    "main",
]
