#!/usr/bin/env python3
# zectl-setup/zectl_setup/modules/aur_install.py

"""
AUR Install Module
Builds zectl and its pacman hook from the AUR as an unprivileged user
"""

import tarfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from tqdm import tqdm

from .base import SetupModule
from ..core.errors import PreconditionError
from ..utils.command_builder import build_aur_install_command, build_makepkg_command


class AurInstall(SetupModule):
    """
    Installs the configured AUR packages through yay.

    makepkg refuses to run as root, so builds run as the first regular user
    (home under /home/). Without one a temporary user with passwordless sudo
    is created and removed again afterwards; simple mode requires a real
    user instead. When yay fails for a package, its AUR snapshot tarball is
    downloaded and built with makepkg directly.
    """

    def __init__(self, context, options=None):
        super().__init__(context, options)
        self.aur = self.config.get('aur', {})
        self.base_url = self.aur.get('base_url', 'https://aur.archlinux.org').rstrip('/')
        self.timeout = self.aur.get('request_timeout', 15)
        self.ignore = self.config.get('packages', {}).get('ignore', [])
        self.temp_user: Optional[str] = None

    def execute(self) -> Dict[str, Any]:
        packages = self.config.get('packages', {}).get('aur', [])
        runner = self.tools.runner

        build_user = self._find_build_user()
        if build_user is None:
            if self.simple_mode:
                raise PreconditionError(
                    "No regular user found. Please install yay manually as a regular user first.")
            build_user = self._create_temp_user()

        try:
            if self.aur.get('rpc_lookup', True):
                self._lookup_packages(packages)

            helper = self.aur.get('helper', 'yay')
            if runner.which(helper) is None:
                self._install_helper(helper, build_user)
            else:
                self.logger.info(f"{helper} is already installed")

            installed: List[str] = []
            for package in tqdm(packages, desc="AUR→", unit="pkg"):
                if self._install_package(package, build_user, helper):
                    installed.append(package)
        finally:
            if self.temp_user:
                self._remove_temp_user()

        versions = self._record_versions(packages)
        return self.result(installed=installed, versions=versions, build_user=build_user)

    # -- build user ------------------------------------------------------

    def _find_build_user(self) -> Optional[str]:
        result = self.tools.runner.run(["getent", "passwd"])
        if not result.ok:
            return None
        for line in result.stdout.splitlines():
            fields = line.split(':')
            if len(fields) < 6:
                continue
            name, home = fields[0], fields[5]
            if name != 'nobody' and home.startswith('/home/') and len(home) > len('/home/'):
                return name
        return None

    def _create_temp_user(self) -> str:
        user = self.aur.get('temp_user', 'builduser')
        self.logger.info("Creating temporary build user for AUR packages...")
        if not self.tools.runner.run(["useradd", "-m", "-G", "wheel", "-s", "/bin/bash", user]).ok:
            self.logger.debug(f"useradd {user} failed, assuming the user already exists")

        sudoers = self.context.path(f"{self.context.host_path('sudoers_dir')}/{user}")
        sudoers.parent.mkdir(parents=True, exist_ok=True)
        sudoers.write_text(f"{user} ALL=(ALL) NOPASSWD: ALL\n")
        sudoers.chmod(0o440)

        self.temp_user = user
        return user

    def _remove_temp_user(self) -> None:
        user = self.temp_user
        self.logger.info(f"Removing temporary build user {user}")
        if not self.tools.runner.run(["userdel", "-r", user]).ok:
            self.warn(f"Failed to remove temporary user {user}")
        sudoers = self.context.path(f"{self.context.host_path('sudoers_dir')}/{user}")
        if sudoers.exists():
            sudoers.unlink()
        self.temp_user = None

    # -- AUR web endpoints -----------------------------------------------

    def _lookup_packages(self, packages: List[str]) -> Dict[str, str]:
        """Query the AUR RPC for the current version of each package"""
        url = f"{self.base_url}/rpc/"
        params = {'v': 5, 'type': 'info', 'arg[]': packages}
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            self.warn(f"AUR lookup failed: {e}")
            return {}
        except ValueError:
            self.warn("AUR lookup returned an invalid response")
            return {}

        found = {entry.get('Name'): entry.get('Version') for entry in data.get('results', [])}
        for package in packages:
            if package in found:
                self.logger.info(f"AUR package {package} {found[package]}")
            else:
                self.warn(f"Package {package} not found in the AUR")
        return found

    def _download_snapshot(self, package: str, build_dir: Path) -> Path:
        """Fetch and unpack the AUR snapshot tarball; returns the PKGBUILD directory"""
        url = f"{self.base_url}/cgit/aur.git/snapshot/{package}.tar.gz"
        archive = build_dir / f"{package}.tar.gz"

        self.logger.info(f"Downloading {url}")
        with requests.get(url, stream=True, timeout=self.timeout) as response:
            response.raise_for_status()
            with open(archive, 'wb') as f:
                for chunk in response.iter_content(chunk_size=8192):
                    f.write(chunk)

        # Extraction filters exist only on interpreters with the tarfile security fixes
        extract_options = {'filter': 'data'} if hasattr(tarfile, 'data_filter') else {}
        with tarfile.open(archive, 'r:gz') as tar:
            tar.extractall(build_dir, **extract_options)
        archive.unlink()
        return build_dir / package

    # -- builds ----------------------------------------------------------

    def _chown(self, path: Path, user: str) -> None:
        self.tools.runner.run(["chown", "-R", f"{user}:{user}", str(path)])

    def _install_helper(self, helper: str, user: str) -> None:
        source = f"{helper}-git" if self.simple_mode else helper
        self.logger.info(f"Installing {helper} AUR helper...")

        tmp_dir = self.context.host_path('tmp_dir')
        self.context.remove_tree(f"{tmp_dir}/{source}")
        checkout = self.context.path(f"{tmp_dir}/{source}")

        runner = self.tools.runner
        if not runner.run(["git", "clone", f"{self.base_url}/{source}.git", str(checkout)]).ok:
            self._helper_failed(f"Failed to clone {source}")
            return
        self._chown(checkout, user)
        runner.run(build_makepkg_command(user), capture=False, cwd=str(checkout))

        if runner.which(helper) is None:
            self._helper_failed(f"Failed to install {helper}")
            return
        self.success(f"Installed {helper} AUR helper")

    def _helper_failed(self, message: str) -> None:
        if self.simple_mode:
            raise PreconditionError(message)
        self.warn(message)

    def _install_package(self, package: str, user: str, helper: str) -> bool:
        self.logger.info(f"Installing {package} from AUR as user {user}...")
        command = build_aur_install_command(package, user, helper, self.ignore)
        if self.tools.runner.run(command, capture=False).ok:
            self.success(f"Successfully installed {package}")
            return True

        self.warn(f"Failed to install {package} via {helper}, trying manual build...")
        return self._manual_build(package, user)

    def _manual_build(self, package: str, user: str) -> bool:
        build_host = f"{self.context.host_path('tmp_dir')}/zectl-{package}-build"
        self.context.remove_tree(build_host)
        build_dir = self.context.path(build_host)
        build_dir.mkdir(parents=True)

        try:
            pkgbuild_dir = self._download_snapshot(package, build_dir)
        except (requests.RequestException, tarfile.TarError, OSError) as e:
            self.warn(f"Failed to download {package} from the AUR: {e}")
            return False

        self._chown(build_dir, user)
        result = self.tools.runner.run(
            build_makepkg_command(user, self.ignore), capture=False, cwd=str(pkgbuild_dir))
        if not result.ok:
            self.warn(f"Failed to build {package} manually")
            return False

        self.success(f"Successfully built {package}")
        return True

    def _record_versions(self, packages: List[str]) -> Dict[str, str]:
        versions = {}
        for package in packages:
            version = self.tools.pacman.version(package)
            if version:
                versions[package] = version
                if self.context.manifest is not None:
                    self.context.manifest.record_package_version(package, version)
        return versions
