"""
Tests for platform profile loading and validation.
"""

import os
import sys
import tempfile
import unittest
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from platform_profiles import (
    ProfileValidationError, get_platform_profile, load_platform_profiles,
)


class TestDefaultProfiles(unittest.TestCase):

    def test_supported_platforms_present(self):
        profiles = load_platform_profiles()
        self.assertEqual(set(profiles), {"youtube", "tiktok"})

    def test_standards_ordered(self):
        for platform in ("youtube", "tiktok"):
            s = get_platform_profile(platform).standards
            self.assertTrue(s.excellent > s.good > s.average > s.poor, platform)

    def test_unknown_platform(self):
        self.assertIsNone(get_platform_profile("myspace"))


class TestValidation(unittest.TestCase):

    def setUp(self):
        self.path = Path(tempfile.mktemp(suffix=".yaml"))

    def tearDown(self):
        if self.path.exists():
            self.path.unlink()

    def _write(self, text):
        self.path.write_text(text)

    def test_empty_file(self):
        self._write("")
        with self.assertRaises(ProfileValidationError):
            load_platform_profiles(self.path)

    def test_missing_fields(self):
        self._write("youtube:\n  display_name: YouTube\n")
        with self.assertRaises(ProfileValidationError) as ctx:
            load_platform_profiles(self.path)
        self.assertIn("leader_engagement", str(ctx.exception))

    def test_missing_standards(self):
        self._write(
            "youtube:\n"
            "  display_name: YouTube\n"
            "  standards: {excellent: 4.0}\n"
            "  leader_engagement: 5.0\n"
            "  focus_metric: comment_rate\n"
            "  focus_threshold: 0.3\n"
        )
        with self.assertRaises(ProfileValidationError):
            load_platform_profiles(self.path)

    def test_unknown_focus_metric(self):
        self._write(
            "youtube:\n"
            "  display_name: YouTube\n"
            "  standards: {excellent: 4, good: 2.5, average: 1.5, poor: 0.8, like_rate: 2, comment_rate: 0.5}\n"
            "  leader_engagement: 5.0\n"
            "  focus_metric: watch_time\n"
            "  focus_threshold: 0.3\n"
        )
        with self.assertRaises(ProfileValidationError):
            load_platform_profiles(self.path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_platform_profiles(self.path)


if __name__ == "__main__":
    unittest.main()
