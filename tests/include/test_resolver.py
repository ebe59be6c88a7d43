# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import os
import tempfile
import unittest

from cppscan.resolver import IncludePath, resolve_include


class TestResolver(unittest.TestCase):
    """
    Test resolution of include paths.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name
        self.local = os.path.join(self.root, "src")
        self.first = os.path.join(self.root, "first")
        self.second = os.path.join(self.root, "second")
        for directory in [self.local, self.first, self.second]:
            os.mkdir(directory)

    def tearDown(self):
        self.tmp.cleanup()

    def touch(self, directory, name):
        path = os.path.join(directory, name)
        with open(path, "w") as f:
            f.write("\n")
        return path

    def test_relative_first(self):
        """Check that quoted includes prefer the current directory"""
        local = self.touch(self.local, "a.h")
        self.touch(self.first, "a.h")
        resolved = resolve_include([self.first], self.local, "a.h")
        self.assertEqual(resolved, local)

    def test_search_paths(self):
        """Check that search paths are tried in order"""
        self.touch(self.second, "b.h")
        first = self.touch(self.first, "b.h")
        paths = [self.first, self.second]
        self.assertEqual(resolve_include(paths, self.local, "b.h"), first)

        second = self.touch(self.second, "c.h")
        self.assertEqual(resolve_include(paths, self.local, "c.h"), second)

    def test_system(self):
        """Check that system includes skip the current directory"""
        self.touch(self.local, "d.h")
        self.assertIsNone(resolve_include([], self.local, "d.h", True))

        system = self.touch(self.first, "d.h")
        resolved = resolve_include([self.first], self.local, "d.h", True)
        self.assertEqual(resolved, system)

    def test_missing(self):
        """Check headers that do not exist"""
        self.assertIsNone(resolve_include([self.first], self.local, "x.h"))
        self.assertIsNone(resolve_include([], None, "x.h"))

        # Directories are not headers
        os.mkdir(os.path.join(self.first, "dir.h"))
        self.assertIsNone(resolve_include([self.first], None, "dir.h"))

    def test_subdirectory(self):
        """Check headers in subdirectories"""
        os.mkdir(os.path.join(self.first, "sys"))
        path = self.touch(os.path.join(self.first, "sys"), "e.h")
        resolved = resolve_include([self.first], None, "sys/e.h", True)
        self.assertEqual(os.path.realpath(resolved), os.path.realpath(path))

    def test_include_path(self):
        """Check IncludePath"""
        system = IncludePath("a.h", True)
        user = IncludePath("a.h", False)
        self.assertEqual(system.spelling(), ["<a.h>"])
        self.assertEqual(user.spelling(), ['"a.h"'])
        self.assertTrue(system.is_system_path())
        self.assertNotEqual(system, user)
        self.assertEqual(user, IncludePath("a.h", False))


if __name__ == "__main__":
    unittest.main()
