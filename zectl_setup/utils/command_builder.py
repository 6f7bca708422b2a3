from typing import List, Optional, Sequence

KERNEL_NAME_FORBIDDEN = ("/", " ", "\t", "\n")


def build_sudo_command(user: str, command: Sequence[str]) -> List[str]:
    """
    Wraps a command so it runs as `user` through sudo.

    Args:
        user: Unprivileged account the command should run as.
        command: The command to wrap.

    Returns:
        A list of strings representing the sudo invocation.
    """
    if not user:
        raise ValueError("Build user cannot be empty.")
    if user == "root":
        raise ValueError("makepkg refuses to run as root; a regular build user is required.")
    if not command:
        raise ValueError("Command cannot be empty.")
    return ["sudo", "-u", user] + list(command)


def build_aur_install_command(
    package: str,
    user: str,
    helper: str = "yay",
    ignore: Optional[Sequence[str]] = None,
) -> List[str]:
    """
    Builds an AUR helper install command for one package.

    Args:
        package: AUR package name (e.g. "zectl-git").
        user: Build user the helper runs as.
        helper: AUR helper binary. Defaults to "yay".
        ignore: Packages the helper must never pull in as dependencies.

    Returns:
        A list of strings representing the helper command.
    """
    if not package:
        raise ValueError("Package name cannot be empty.")

    cmd = [helper, "-S", "--noconfirm"]
    if ignore:
        cmd.extend(["--ignore", ",".join(ignore)])
    cmd.append(package)

    return build_sudo_command(user, cmd)


def build_makepkg_command(user: str, ignore: Optional[Sequence[str]] = None) -> List[str]:
    """
    Builds a `makepkg -si` command run as the build user from the PKGBUILD directory.

    `ignore` is forwarded to pacman when makepkg installs dependencies.
    """
    cmd = ["makepkg", "-si", "--noconfirm"]
    if ignore:
        cmd.extend(["--ignore", ",".join(ignore)])
    return build_sudo_command(user, cmd)


def build_sbctl_bundle_command(kernel: str, esp_path: str = "/boot") -> List[str]:
    """
    Builds an `sbctl bundle` command producing a signed unified kernel image.

    Args:
        kernel: Kernel name suffix, e.g. "linux-cachyos" for /boot/vmlinuz-linux-cachyos.
        esp_path: Directory holding the kernel and initramfs; the UKI goes to
                  <esp_path>/EFI/Linux/<kernel>.efi.

    Returns:
        A list of strings representing the sbctl command.
    """
    if not kernel:
        raise ValueError("Kernel name cannot be empty.")
    if any(ch in kernel for ch in KERNEL_NAME_FORBIDDEN):
        raise ValueError(f"Invalid kernel name: {kernel!r}")

    base = esp_path.rstrip("/") or ""
    return [
        "sbctl", "bundle", "-s",
        "-k", f"{base}/vmlinuz-{kernel}",
        "-f", f"{base}/initramfs-{kernel}.img",
        f"{base}/EFI/Linux/{kernel}.efi",
    ]


def build_zectl_destroy_command(name: str, recursive: bool = False) -> List[str]:
    """
    Builds a `zectl destroy` command.

    Args:
        name: Boot environment name.
        recursive: Also destroy descendent datasets and snapshots (-r).
    """
    if not name:
        raise ValueError("Boot environment name cannot be empty.")
    cmd = ["zectl", "destroy"]
    if recursive:
        cmd.append("-r")
    cmd.append(name)
    return cmd

# Example usage:
#
# build_aur_install_command("zectl-git", "alice", ignore=["zfs-dkms", "spl-dkms"])
# # ['sudo', '-u', 'alice', 'yay', '-S', '--noconfirm', '--ignore', 'zfs-dkms,spl-dkms', 'zectl-git']
#
# build_sbctl_bundle_command("linux-cachyos")
# # ['sbctl', 'bundle', '-s', '-k', '/boot/vmlinuz-linux-cachyos',
# #  '-f', '/boot/initramfs-linux-cachyos.img', '/boot/EFI/Linux/linux-cachyos.efi']
