#!/usr/bin/env python3
"""
Tests for GRUB installation and filesystem table generation.
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.dirname(__file__))

from test_helpers import FakeRunner, make_hardware, make_paths, make_plan  # noqa: E402

from guided_installer.actions import ActionLog  # noqa: E402
from guided_installer.errors import CommandError  # noqa: E402
from guided_installer.lib.bootloader import install_bootloader  # noqa: E402
from guided_installer.pipeline import InstallContext  # noqa: E402
from guided_installer.steps import WriteFstabStep  # noqa: E402

GENFSTAB = "# /dev/sda2\nUUID=1111\t/\text4\trw,relatime\t0 1\n\n# /dev/sda1\nUUID=2222\t/boot\tvfat\trw\t0 2\n"


class TestInstallBootloader(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.actions = ActionLog(os.path.join(self.tmp.name, "actions.log"))

    def tearDown(self):
        self.tmp.cleanup()

    def test_uefi_targets_efi_directory(self):
        runner = FakeRunner()
        res = install_bootloader(runner, "/mnt", uefi=True, disk="/dev/sda", actions=self.actions)
        self.assertEqual(
            runner.argvs[0],
            [
                "arch-chroot",
                "/mnt",
                "grub-install",
                "--target=x86_64-efi",
                "--efi-directory=/boot",
                "--bootloader-id=Arch",
                "--recheck",
            ],
        )
        self.assertEqual(runner.argvs[1], ["arch-chroot", "/mnt", "grub-mkconfig", "-o", "/boot/grub/grub.cfg"])
        self.assertEqual(res.target, "x86_64-efi")

    def test_bios_targets_disk(self):
        runner = FakeRunner()
        res = install_bootloader(runner, "/mnt", uefi=False, disk="/dev/vda", actions=self.actions)
        self.assertEqual(runner.argvs[0], ["arch-chroot", "/mnt", "grub-install", "--target=i386-pc", "/dev/vda"])
        self.assertEqual(res.target, "i386-pc")

    def test_failure_is_fatal(self):
        runner = FakeRunner().on("arch-chroot", "/mnt", "grub-install", returncode=1)
        with self.assertRaises(CommandError):
            install_bootloader(runner, "/mnt", uefi=True, disk="/dev/sda", actions=self.actions)
        self.assertFalse(runner.chroot("grub-mkconfig"))


class TestWriteFstab(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.paths = make_paths(self.tmp.name)
        self.actions = ActionLog(self.paths.action_log)

    def tearDown(self):
        self.tmp.cleanup()

    def ctx(self, runner):
        return InstallContext(
            plan=make_plan(),
            hardware=make_hardware(),
            runner=runner,
            actions=self.actions,
            paths=self.paths,
        )

    def test_appends_genfstab_output(self):
        fstab = Path(self.paths.target_root, "etc/fstab")
        fstab.parent.mkdir(parents=True)
        fstab.write_text("# Static information about the filesystems.\n")
        runner = FakeRunner().on("genfstab", stdout=GENFSTAB)

        res = WriteFstabStep().run(self.ctx(runner), {})
        self.assertEqual(runner.argvs[0], ["genfstab", "-U", self.paths.target_root])
        self.assertEqual(fstab.read_text(), "# Static information about the filesystems.\n" + GENFSTAB)
        self.assertEqual(res.entries, 2)

    def test_copies_live_log_into_target(self):
        runner = FakeRunner().on("genfstab", stdout=GENFSTAB)
        self.actions.record("test", "before fstab")
        res = WriteFstabStep().run(self.ctx(runner), {})
        self.assertTrue(res.live_log_copy)
        copy = Path(self.paths.target_root, self.paths.target_live_log_copy).read_text()
        self.assertIn("before fstab", copy)

    def test_genfstab_failure_is_fatal(self):
        runner = FakeRunner().on("genfstab", returncode=1)
        with self.assertRaises(CommandError):
            WriteFstabStep().run(self.ctx(runner), {})


if __name__ == "__main__":
    unittest.main()
