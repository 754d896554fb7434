"""Toolchain installation into a job-local CARGO_HOME / RUSTUP_HOME."""

from __future__ import annotations

import logging
import ssl
from pathlib import Path

import httpx

from bvh.harness.types import (
    OWNER_MARKER,
    EnvironmentOverrides,
    FetchError,
    InstallRootError,
    ToolchainSpec,
)

logger = logging.getLogger(__name__)

INSTALLER_NAME = "rustup.sh"


def pinned_tls_context() -> ssl.SSLContext:
    """Verifying client context that refuses anything older than TLS 1.2."""
    ctx = ssl.create_default_context()
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    return ctx


def _require_https(request: httpx.Request) -> None:
    """Request hook, called before every request (redirect hops included) is sent."""
    if request.url.scheme != "https":
        raise FetchError(f"Redirected to non-https URL: {request.url}")


class Downloader:
    """Fetch a single payload over https.

    Redirects are followed only while every hop stays on https; a plain-http
    hop fails the download instead of downgrading.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client_kwargs: dict = {
            "verify": pinned_tls_context(),
            "timeout": timeout,
            "follow_redirects": True,
            "event_hooks": {"request": [_require_https]},
        }
        if transport is not None:
            self._client_kwargs["transport"] = transport

    def download(self, url: str, output_path: Path) -> Path:
        """Download *url* to *output_path*.

        Raises:
            FetchError: On a non-https URL or hop, TLS failure or HTTP error.
        """
        if not url.startswith("https://"):
            raise FetchError(f"Refusing non-https URL: {url}")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with httpx.Client(**self._client_kwargs) as client:
                with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    with open(output_path, "wb") as fh:
                        for chunk in resp.iter_bytes(chunk_size=8192):
                            fh.write(chunk)
        except httpx.HTTPError as exc:
            output_path.unlink(missing_ok=True)
            raise FetchError(f"Failed to download {url}: {exc}") from exc
        except FetchError:
            output_path.unlink(missing_ok=True)
            raise

        logger.info("Downloaded %s -> %s", url, output_path)
        return output_path


# ---------------------------------------------------------------------------
# Install root ownership
# ---------------------------------------------------------------------------

def check_install_dir(path: Path) -> None:
    """Require *path* to be absent, empty, or previously marked by the harness.

    Raises:
        InstallRootError: If *path* holds something the harness did not create.
    """
    if not path.exists():
        return
    if not path.is_dir():
        raise InstallRootError(f"Install path is not a directory: {path}")
    if (path / OWNER_MARKER).is_file():
        return
    if any(path.iterdir()):
        raise InstallRootError(
            f"Install directory {path} is not empty and was not created by the harness"
        )


def check_install_roots(overrides: EnvironmentOverrides) -> None:
    for d in (overrides.cargo_home, overrides.rustup_home):
        check_install_dir(d)


def claim_install_roots(overrides: EnvironmentOverrides) -> None:
    """Create both install directories and mark them as harness-owned."""
    for d in (overrides.cargo_home, overrides.rustup_home):
        d.mkdir(parents=True, exist_ok=True)
        (d / OWNER_MARKER).touch()


def is_installed(overrides: EnvironmentOverrides) -> bool:
    """True if the harness-owned toolchain already provides cargo and rustup."""
    return (
        (overrides.cargo_home / OWNER_MARKER).is_file()
        and (overrides.bin_dir / "cargo").exists()
        and (overrides.bin_dir / "rustup").exists()
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def installer_path(overrides: EnvironmentOverrides) -> Path:
    """Installer download location, inside the harness-owned CARGO_HOME."""
    return overrides.cargo_home / INSTALLER_NAME


def installer_command(spec: ToolchainSpec, installer: Path) -> tuple[str, ...]:
    """Non-interactive rustup-init invocation."""
    argv = [
        "sh", str(installer),
        "--default-host", spec.host_triple,
        "--default-toolchain", spec.channel,
        "-y",
    ]
    if spec.no_modify_path:
        argv.append("--no-modify-path")
    return tuple(argv)


def component_command(component: str) -> tuple[str, ...]:
    return ("rustup", "component", "add", component)
