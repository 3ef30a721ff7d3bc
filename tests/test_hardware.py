#!/usr/bin/env python3
"""
Tests for hardware probing: firmware mode, memory and candidate disks.
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.dirname(__file__))

from test_helpers import FakeRunner, lsblk_disks, lsblk_tree, make_paths, node  # noqa: E402

from guided_installer.errors import PreconditionError  # noqa: E402
from guided_installer.lib.block import inspect_device, list_disks  # noqa: E402
from guided_installer.lib.firmware import detect_uefi  # noqa: E402
from guided_installer.lib.hwdetect import detect_hardware, read_memory_mb  # noqa: E402


class TestListDisks(unittest.TestCase):
    def test_filters_removable_zram_and_loop(self):
        runner = FakeRunner().on(
            "lsblk",
            "-J",
            "-b",
            stdout=lsblk_disks(
                {"name": "/dev/sda", "rota": False},
                {"name": "/dev/sdb", "rm": True},
                {"name": "/dev/zram0"},
                {"name": "/dev/loop0", "type": "loop"},
                {"name": "/dev/nvme0n1", "rota": "0", "rm": "0", "model": "  Samsung  "},
            ),
        )
        disks = list_disks(runner)
        self.assertEqual([d.path for d in disks], ["/dev/sda", "/dev/nvme0n1"])
        self.assertFalse(disks[0].rotational)
        self.assertFalse(disks[1].rotational)
        self.assertEqual(disks[1].model, "Samsung")

    def test_lsblk_failure_means_no_disks(self):
        runner = FakeRunner().on("lsblk", returncode=1)
        self.assertEqual(list_disks(runner), [])

    def test_size_label(self):
        runner = FakeRunner().on("lsblk", stdout=lsblk_disks({"size": 64 * 1024**3}))
        self.assertEqual(list_disks(runner)[0].size_label, "64.0GiB")


class TestInspectDevice(unittest.TestCase):
    def test_collects_mounts_crypt_and_mapper(self):
        tree = lsblk_tree(
            "/dev/sda",
            node("/dev/sda1", mountpoint="/mnt/boot"),
            node("/dev/sda2", children=[node("/dev/mapper/cryptroot", "crypt", children=[node("/dev/mapper/vg-root", "lvm", "/mnt")])]),
        )
        state = inspect_device(FakeRunner().on("lsblk", stdout=tree), "/dev/sda")
        self.assertEqual(state.partitions, ("/dev/sda1", "/dev/sda2"))
        self.assertEqual(state.mounts, ("/mnt/boot", "/mnt"))
        self.assertEqual(state.crypt, ("/dev/mapper/cryptroot",))
        self.assertEqual(state.mapper, ("/dev/mapper/vg-root",))
        self.assertTrue(state.busy)

    def test_swap_is_not_a_mount(self):
        tree = lsblk_tree("/dev/sda", node("/dev/sda1", mountpoint="[SWAP]"))
        state = inspect_device(FakeRunner().on("lsblk", stdout=tree), "/dev/sda")
        self.assertEqual(state.mounts, ())
        self.assertFalse(state.busy)

    def test_mountpoints_list_from_newer_lsblk(self):
        swap = dict(node("/dev/sda1"), mountpoints=[None, "[SWAP]"])
        root = dict(node("/dev/sda2"), mountpoints=["/mnt", "/srv"])
        state = inspect_device(FakeRunner().on("lsblk", stdout=lsblk_tree("/dev/sda", swap, root)), "/dev/sda")
        self.assertEqual(state.mounts, ("/mnt",))

    def test_free_device_is_not_busy(self):
        tree = lsblk_tree("/dev/sda", node("/dev/sda1"))
        state = inspect_device(FakeRunner().on("lsblk", stdout=tree), "/dev/sda")
        self.assertFalse(state.busy)
        self.assertTrue(state.has_partitions)


class TestDetectHardware(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.paths = make_paths(self.tmp.name)
        Path(self.paths.meminfo).parent.mkdir(parents=True)
        Path(self.paths.meminfo).write_text("MemTotal:        4194304 kB\nMemFree:  100 kB\n")

    def tearDown(self):
        self.tmp.cleanup()

    def test_uefi_memory_and_virtualization(self):
        os.makedirs(self.paths.efivars)
        runner = FakeRunner().on("lsblk", stdout=lsblk_disks({})).on("systemd-detect-virt", stdout="kvm\n")
        hw = detect_hardware(runner, self.paths)
        self.assertTrue(hw.uefi)
        self.assertEqual(hw.memory_mb, 4096)
        self.assertFalse(hw.low_memory)
        self.assertEqual(hw.virtualization, "kvm")
        self.assertEqual(hw.suggested_vm_variant, "qemu")

    def test_bios_when_efivars_absent(self):
        self.assertFalse(detect_uefi(self.paths.efivars))

    def test_no_disks_is_fatal(self):
        runner = FakeRunner().on("lsblk", stdout=lsblk_disks({"rm": True}))
        with self.assertRaises(PreconditionError):
            detect_hardware(runner, self.paths)

    def test_missing_virt_tool_defaults_to_none(self):
        runner = FakeRunner(missing={"systemd-detect-virt"}).on("lsblk", stdout=lsblk_disks({}))
        hw = detect_hardware(runner, self.paths)
        self.assertEqual(hw.virtualization, "none")
        self.assertEqual(hw.suggested_vm_variant, "none")

    def test_unreadable_meminfo_reads_zero(self):
        self.assertEqual(read_memory_mb(os.path.join(self.tmp.name, "nope")), 0)


if __name__ == "__main__":
    unittest.main()
