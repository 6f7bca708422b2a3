#!/usr/bin/env python3
"""Tests for the diagnose pipeline."""

from zectl_setup.core.builder import SetupPipeline

JOURNAL = "\n".join(
    [f"May 17 09:{minute:02d}:00 host kernel: PM: suspend entry (deep)" for minute in range(12)]
    + ["May 17 09:20:00 host systemd[1]: Started Network Manager."]
) + "\n"

LSMOD = (
    "Module                  Size  Used by\n"
    "amdgpu              12345678  12\n"
    "zfs                  5000000  7\n"
)


def diagnose(context):
    return SetupPipeline(context).execute_pipeline('diagnose')


def test_full_report(runner, context, host_root, output):
    runner.install('zpool')
    runner.on('zpool', 'status', stdout="  pool: zroot\n state: ONLINE\n")
    runner.on('systemctl', 'list-unit-files', 'zfs-mount.service', stdout="zfs-mount.service enabled\n")
    runner.on('systemctl', 'list-unit-files', returncode=1)
    runner.on('systemctl', 'is-active', 'zfs-mount.service', stdout="active\n")
    runner.on('systemctl', 'is-enabled', 'zfs-mount.service', stdout="enabled\n")
    runner.on('systemctl', 'is-active', returncode=3, stdout="inactive\n")
    runner.on('journalctl', stdout=JOURNAL)
    runner.on('lsmod', stdout=LSMOD)

    power = host_root / 'sys' / 'power'
    power.mkdir(parents=True)
    (power / 'state').write_text("freeze mem disk\n")
    (host_root / 'etc' / 'systemd').mkdir()
    (host_root / 'etc' / 'systemd' / 'sleep.conf').write_text(
        "# See systemd-sleep.conf(5)\n[Sleep]\nAllowHibernation=no\n")

    result = diagnose(context)
    assert result['status'] == 'success'
    report = result['results']['Diagnostics']['report']

    assert report['ZFS Pool Status'] is True
    assert report['ZFS Services Status'] == {
        'zfs-mount.service': {'active': 'active', 'enabled': 'enabled'}}
    assert report['Power Management'] == {'state': 'freeze mem disk', 'policy': None}
    assert len(report['Recent Sleep/Wake Logs']) == 10
    assert report['Recent Sleep/Wake Logs'][-1].startswith("May 17 09:11:00")
    assert report['systemd Sleep Configuration'] == ['[Sleep]', 'AllowHibernation=no']
    assert report['Potentially Problematic Modules'] == ["amdgpu              12345678  12"]

    text = output.getvalue()
    for number in range(1, 7):
        assert f"[{number}/6]" in text
    assert "Current power policy:\nNot available" in text
    assert "ZFS import services are running." not in text
    assert text.rstrip().endswith("Diagnostic complete.")


def test_bare_host(runner, context, output):
    runner.on('systemctl', 'list-unit-files', returncode=1)
    runner.on('systemctl', 'is-active', 'zfs-import-cache.service', stdout="active\n")

    result = diagnose(context)
    report = result['results']['Diagnostics']['report']

    assert report['ZFS Pool Status'] is False
    assert report['ZFS Services Status'] == {}
    assert report['Power Management'] == {'state': None, 'policy': None}
    assert report['Recent Sleep/Wake Logs'] == []
    assert report['systemd Sleep Configuration'] is None

    text = output.getvalue()
    assert "ZFS not found" in text
    assert "Cannot read /sys/power/state" in text
    assert "No sleep/wake related messages found" in text
    assert "Using default sleep configuration" in text
    assert "No problematic GPU modules found" in text
    assert "  sudo systemctl mask zfs-import-cache.service" in text


def test_diagnose_does_not_write(runner, context, host_root):
    before = sorted(p.relative_to(host_root) for p in host_root.rglob('*'))
    diagnose(context)
    assert sorted(p.relative_to(host_root) for p in host_root.rglob('*')) == before
    assert context.manifest is None
