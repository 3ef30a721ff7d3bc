#!/usr/bin/env python3
"""
Tests for the interactive questionnaire, driven by a scripted prompter.
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.dirname(__file__))

from test_helpers import ScriptedPrompter, make_hardware, make_paths  # noqa: E402

from guided_installer.errors import ConfirmationError  # noqa: E402
from guided_installer.questionnaire import (  # noqa: E402
    collect_plan,
    list_locales,
    list_timezone_cities,
    list_timezone_regions,
)

SUPPORTED = "en_US.UTF-8 UTF-8\nde_DE.UTF-8 UTF-8\nde_DE ISO-8859-1\nen_US.UTF-8 UTF-8\n"

THEME_PROMPT = "Choose Openbox theme (pairs with Breeze-Dark):"


class _Base(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.paths = make_paths(self.tmp.name)
        Path(self.paths.supported_locales).parent.mkdir(parents=True)
        Path(self.paths.supported_locales).write_text(SUPPORTED)
        for zone in ("Europe/Berlin", "Europe/Paris", "America/New_York"):
            p = Path(self.paths.zoneinfo, zone)
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text("TZif")
        self.hardware = make_hardware(virtualization="oracle")

    def tearDown(self):
        self.tmp.cleanup()

    def prompter(self, **overrides):
        script = dict(
            menus=[None, "de_DE.UTF-8", "de", "Europe", "Berlin", "yes", "openbox", "Triste", None, "/dev/sda"],
            texts=["alice", "/dev/sda"],
            secrets=["pw", "pw"],
            confirms=[True, False, True, True],
        )
        script.update(overrides)
        return ScriptedPrompter(**script)


class TestCollectPlan(_Base):
    def test_full_walkthrough(self):
        plan = collect_plan(self.prompter(), self.hardware, self.paths)
        self.assertTrue(plan.confirmed)
        self.assertEqual(plan.target_device, "/dev/sda")
        self.assertEqual(plan.mirror_mode, "auto")
        self.assertTrue(plan.safe_mode)
        self.assertEqual((plan.locale, plan.keymap, plan.timezone), ("de_DE.UTF-8", "de", "Europe/Berlin"))
        self.assertFalse(plan.minimal_footprint)
        self.assertTrue(plan.gaming)
        self.assertEqual((plan.window_manager, plan.openbox_theme), ("openbox", "Triste"))
        self.assertTrue(plan.ssh_enabled)
        self.assertEqual(plan.vm_variant, "vbox")
        self.assertEqual((plan.username, plan.password), ("alice", "pw"))
        self.assertEqual(plan.memory_mb, self.hardware.memory_mb)

    def test_keyboard_reminder_precedes_password(self):
        p = self.prompter()
        collect_plan(p, self.hardware, self.paths)
        self.assertIn("Keyboard layout set to: de", p.messages[0])
        self.assertLess(p.asked.index("Choose keyboard layout:"), p.asked.index("Enter password for alice"))

    def test_maybe_counts_as_gaming(self):
        menus = [None, None, None, "Europe", "Paris", "maybe", "i3", None, "/dev/sda"]
        plan = collect_plan(self.prompter(menus=menus), self.hardware, self.paths)
        self.assertTrue(plan.gaming)
        self.assertEqual(plan.locale, "en_US.UTF-8")

    def test_theme_only_asked_for_openbox(self):
        p = self.prompter(menus=[None, None, None, "Europe", "Paris", "no", "i3", None, "/dev/sda"])
        plan = collect_plan(p, self.hardware, self.paths)
        self.assertNotIn(THEME_PROMPT, p.asked)
        self.assertEqual(plan.openbox_theme, "")

    def test_default_username(self):
        plan = collect_plan(self.prompter(texts=["", "/dev/sda"]), self.hardware, self.paths)
        self.assertEqual(plan.username, "user")

    def test_username_reprompted_until_valid(self):
        p = self.prompter(texts=["Bob", "bob", "/dev/sda"])
        plan = collect_plan(p, self.hardware, self.paths)
        self.assertEqual(plan.username, "bob")
        self.assertEqual(p.asked.count("Enter username (lowercase)"), 2)
        self.assertIn("Invalid username 'Bob'", p.messages[0])
        self.assertIn("Enter password for bob", p.asked)

    def test_top_level_zone(self):
        Path(self.paths.zoneinfo, "UTC").write_bytes(b"TZif2\x00")
        menus = [None, None, None, "UTC", "no", "dwm", None, "/dev/sda"]
        p = self.prompter(menus=menus)
        plan = collect_plan(p, self.hardware, self.paths)
        self.assertEqual(plan.timezone, "UTC")
        self.assertNotIn("Choose timezone city:", p.asked)

    def test_password_reprompted_until_match(self):
        p = self.prompter(secrets=["a", "b", "", "", "pw", "pw"])
        plan = collect_plan(p, self.hardware, self.paths)
        self.assertEqual(plan.password, "pw")
        self.assertEqual(sum("did not match" in m for m in p.messages), 2)

    def test_free_text_timezone_without_zoneinfo(self):
        paths = make_paths(os.path.join(self.tmp.name, "bare"))
        menus = [None, None, "us", "no", "dwm", None, "/dev/sda"]
        plan = collect_plan(self.prompter(menus=menus, texts=["", "alice", "/dev/sda"]), self.hardware, paths)
        self.assertEqual(plan.timezone, "UTC")
        self.assertEqual(plan.locale, "en_US.UTF-8")

    def test_declined_erase_aborts(self):
        with self.assertRaises(ConfirmationError):
            collect_plan(self.prompter(confirms=[False, False, False, False]), self.hardware, self.paths)

    def test_retype_mismatch_aborts(self):
        with self.assertRaises(ConfirmationError):
            collect_plan(self.prompter(texts=["alice", "/dev/sdb"]), self.hardware, self.paths)


class TestListings(_Base):
    def test_locales_are_utf8_sorted_unique(self):
        self.assertEqual(list_locales(self.paths.supported_locales), ["de_DE.UTF-8", "en_US.UTF-8"])

    def test_locales_fall_back_to_default(self):
        self.assertEqual(list_locales(os.path.join(self.tmp.name, "missing")), ["en_US.UTF-8"])

    def test_timezones(self):
        self.assertEqual(list_timezone_regions(self.paths.zoneinfo), ["America", "Europe"])
        self.assertEqual(list_timezone_cities("Europe", self.paths.zoneinfo), ["Berlin", "Paris"])
        self.assertEqual(list_timezone_cities("Asia", self.paths.zoneinfo), [])

    def test_regions_include_top_level_zones_only(self):
        base = Path(self.paths.zoneinfo)
        (base / "UTC").write_bytes(b"TZif2\x00")
        (base / "posixrules").write_bytes(b"TZif2\x00")
        (base / "zone.tab").write_text("# tz zone descriptions\n")
        (base / "leapseconds").write_text("# leap seconds\n")
        (base / "posix" / "Europe").mkdir(parents=True)
        self.assertEqual(list_timezone_regions(self.paths.zoneinfo), ["America", "Europe", "UTC"])


if __name__ == "__main__":
    unittest.main()
