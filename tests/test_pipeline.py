#!/usr/bin/env python3
"""
End-to-end pipeline tests against a fake command runner and a temporary
staging root.
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path

import yaml

sys.path.insert(0, os.path.dirname(__file__))

from test_helpers import FakeRunner, df_output, lsblk_tree, make_hardware, make_paths, make_plan, node  # noqa: E402

from guided_installer.actions import ActionLog  # noqa: E402
from guided_installer.errors import PreconditionError, ProvisionError  # noqa: E402
from guided_installer.lib.block import BlockDevice  # noqa: E402
from guided_installer.main import build_steps  # noqa: E402
from guided_installer.pipeline import InstallContext, run_pipeline  # noqa: E402

GENFSTAB = "UUID=1111\t/\text4\trw,relatime\t0 1\n"
STEP_IDS = [
    "20_reclaim_disk",
    "30_partition_fs",
    "40_resolve_mirrors",
    "50_provision_packages",
    "55_write_fstab",
    "60_configure_system",
    "70_install_bootloader",
    "90_finalize",
]


class _Base(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.paths = make_paths(self.tmp.name)
        self.root = self.paths.target_root
        Path(self.paths.mirrorlist).parent.mkdir(parents=True)
        Path(self.paths.mirrorlist).write_text("Server = https://default.example/$repo/os/$arch\n")
        Path(self.paths.pacman_conf).write_text("[options]\n#ParallelDownloads = 5\n")
        self.actions = ActionLog(self.paths.action_log)

    def tearDown(self):
        self.tmp.cleanup()

    def runner(self, disk, parts, free_kb):
        tree = lsblk_tree(disk, *[node(p) for p in parts])
        return (
            FakeRunner()
            .on("lsblk", stdout=tree)
            .on("df", stdout=df_output(free_kb, self.root))
            .on("genfstab", stdout=GENFSTAB)
        )

    def context(self, plan, hardware, runner):
        return InstallContext(plan=plan, hardware=hardware, runner=runner, actions=self.actions, paths=self.paths)


class TestUefiDesktopInstall(_Base):
    """UEFI, 4096 MB, 64 GiB /disk0, auto mirrors, openbox, no gaming, SSH off, no VM tools."""

    def setUp(self):
        super().setUp()
        disk = BlockDevice(path="/disk0", size_bytes=64 * 1024**3, model="Virtual", rotational=False)
        self.hardware = make_hardware(uefi=True, memory_mb=4096, devices=[disk])
        self.plan = make_plan(
            uefi=True,
            target_device="/disk0",
            memory_mb=4096,
            mirror_mode="auto",
            gaming=False,
            window_manager="openbox",
            openbox_theme="Triste",
            ssh_enabled=False,
            vm_variant="none",
        )
        self.fake = self.runner("/disk0", ["/disk0p1", "/disk0p2"], 50_000_000)
        self.result = run_pipeline(self.context(self.plan, self.hardware, self.fake), build_steps())

    def test_all_steps_ran_in_order(self):
        self.assertEqual(self.result.ran_steps, STEP_IDS)
        self.assertEqual(list(self.result.results), STEP_IDS)

    def test_two_partition_layout(self):
        part = self.result.results["30_partition_fs"]
        self.assertEqual((part.esp_part, part.root_part), ("/disk0p1", "/disk0p2"))
        self.assertTrue(self.fake.ran("sgdisk", "-n", "1:0:+512M"))
        self.assertTrue(self.fake.ran("sgdisk", "-n", "2:0:0"))
        self.assertTrue(self.fake.ran("mount", "/disk0p1", f"{self.root}/boot"))

    def test_single_attempt_without_swap(self):
        prov = self.result.results["50_provision_packages"]
        self.assertEqual(len(prov.attempts), 1)
        self.assertEqual(prov.swap_mb, 0)
        self.assertFalse(self.fake.ran("fallocate"))
        self.assertFalse(self.fake.ran("swapon"))

    def test_power_saving_governor_and_ssh_disabled(self):
        cfg = self.result.results["60_configure_system"]
        self.assertEqual(cfg.governor, "ondemand")
        self.assertTrue(self.fake.chroot("systemctl", "disable", "sshd"))
        self.assertEqual(cfg.failed, [])

    def test_efi_bootloader(self):
        boot = self.result.results["70_install_bootloader"]
        self.assertTrue(boot.uefi)
        self.assertTrue(self.fake.chroot("grub-install", "--target=x86_64-efi", "--efi-directory=/boot"))

    def test_destructive_order(self):
        idx = self.fake.index
        self.assertLess(idx("swapoff", "-a"), idx("wipefs"))
        self.assertLess(idx("mount"), idx("pacstrap"))
        self.assertLess(idx("pacstrap"), idx("genfstab"))
        self.assertLess(idx("genfstab"), idx("arch-chroot"))

    def test_logs_and_summary_land_in_target(self):
        target_log = Path(self.root, self.paths.target_action_log).read_text()
        self.assertIn("Installation completed", target_log)
        self.assertEqual(target_log, Path(self.paths.action_log).read_text())

        summary = yaml.safe_load(Path(self.root, self.paths.target_summary).read_text())
        self.assertEqual(summary["plan"]["username"], "alice")
        self.assertNotIn("password", summary["plan"])
        self.assertEqual(summary["completed_steps"], STEP_IDS)
        self.assertEqual(summary["steps"]["60_configure_system"]["governor"], "ondemand")

    def test_secret_never_written_to_logs(self):
        self.assertNotIn("s3cret", Path(self.paths.action_log).read_text())
        self.assertNotIn("s3cret", Path(self.root, self.paths.target_summary).read_text())


class TestLegacyLowMemoryGamingInstall(_Base):
    """Legacy BIOS, 1024 MB, gaming; target free space falls in the 512 MB swap tier."""

    def setUp(self):
        super().setUp()
        disk = BlockDevice(path="/dev/sda", size_bytes=16 * 1024**3, rotational=True)
        self.hardware = make_hardware(uefi=False, memory_mb=1024, devices=[disk])
        self.plan = make_plan(uefi=False, memory_mb=1024, gaming=True)
        self.fake = self.runner("/dev/sda", ["/dev/sda1"], 1_200_000)
        self.result = run_pipeline(self.context(self.plan, self.hardware, self.fake), build_steps())

    def test_temporary_swap_created_and_removed(self):
        swapfile = f"{self.root}/swapfile"
        self.assertEqual(self.result.results["50_provision_packages"].swap_mb, 512)
        self.assertTrue(self.fake.ran("fallocate", "-l", "512M", swapfile))
        self.assertLess(self.fake.index("swapon", swapfile), self.fake.index("pacstrap"))
        self.assertLess(self.fake.index("pacstrap"), self.fake.index("swapoff", swapfile))
        self.assertTrue(self.fake.ran("rm", "-f", swapfile))

    def test_performance_governor_and_zram(self):
        cfg = self.result.results["60_configure_system"]
        self.assertEqual(cfg.governor, "performance")
        self.assertTrue(self.fake.chroot("pacman", "-S", "--noconfirm", "--needed", "systemd-zram-generator"))
        self.assertTrue(Path(self.root, "etc/systemd/zram-generator.conf").is_file())

    def test_gaming_packages_skipped_on_low_memory(self):
        sets = {s.name: s for s in self.result.results["50_provision_packages"].package_sets}
        self.assertEqual(len(sets["gaming"]), 0)

    def test_bios_layout_and_bootloader(self):
        self.assertTrue(self.fake.ran("parted", "-s", "/dev/sda", "mklabel", "msdos"))
        self.assertFalse(self.fake.ran("mkfs.fat"))
        self.assertTrue(self.fake.chroot("grub-install", "--target=i386-pc", "/dev/sda"))

    def test_no_trim_on_rotational_disk(self):
        self.assertFalse(self.fake.chroot("systemctl", "enable", "fstrim.timer"))


class TestPipelineGuards(_Base):
    def test_refuses_unconfirmed_plan(self):
        fake = self.runner("/dev/sda", ["/dev/sda1", "/dev/sda2"], 50_000_000)
        ctx = self.context(make_plan(confirmed=False), make_hardware(), fake)
        with self.assertRaises(PreconditionError):
            run_pipeline(ctx, build_steps())
        self.assertEqual(fake.calls, [])

    def test_stop_after(self):
        fake = self.runner("/dev/sda", ["/dev/sda1", "/dev/sda2"], 50_000_000)
        res = run_pipeline(self.context(make_plan(), make_hardware(), fake), build_steps(), stop_after="30_partition_fs")
        self.assertEqual(res.ran_steps, STEP_IDS[:2])
        self.assertEqual(res.stopped_after, "30_partition_fs")
        self.assertFalse(fake.ran("pacstrap"))

    def test_unknown_stop_after(self):
        fake = self.runner("/dev/sda", ["/dev/sda1", "/dev/sda2"], 50_000_000)
        with self.assertRaises(PreconditionError):
            run_pipeline(self.context(make_plan(), make_hardware(), fake), build_steps(), stop_after="99_nope")
        self.assertEqual(fake.calls, [])

    def test_provision_failure_stops_before_configuration(self):
        fake = self.runner("/dev/sda", ["/dev/sda1", "/dev/sda2"], 50_000_000).on("pacstrap", returncode=1)
        with self.assertRaises(ProvisionError):
            run_pipeline(self.context(make_plan(), make_hardware(), fake), build_steps())
        self.assertEqual(len(fake.find("pacstrap")), 2)
        self.assertFalse(fake.ran("genfstab"))
        self.assertFalse(fake.ran("arch-chroot"))


if __name__ == "__main__":
    unittest.main()
