# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import contextlib
import io
import logging
import os
import tempfile
import unittest

from cppscan.__main__ import main


class TestCli(unittest.TestCase):
    """
    Test the command line interface.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, name, content):
        path = os.path.join(self.root, name)
        with open(path, "w") as f:
            f.write(content)
        return path

    def run_main(self, argv):
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            status = main(argv)
        return status, stdout.getvalue().splitlines()

    def test_tokens(self):
        """Check the tokens command"""
        path = self.write("main.c", "int main;\n")
        status, lines = self.run_main(["tokens", path])
        self.assertEqual(status, 0)
        self.assertEqual(lines[0], "1:0:3 KEYWORD_INT 'int'")
        self.assertTrue(any("IDENTIFIER 'main'" in line for line in lines))
        self.assertEqual(len(lines), 5)

    def test_defines(self):
        """Check the defines command"""
        path = self.write("main.c", "#define A 1\n#define F(x) x\n")
        status, lines = self.run_main(["defines", path])
        self.assertEqual(status, 0)
        self.assertEqual(lines, ["A=1", "F(x)=x"])

    def test_includes(self):
        """Check the includes command"""
        header = self.write("a.h", '#include "b.h"\n')
        other = self.write("b.h", "")
        path = self.write("main.c", '\n#include "a.h"\n')

        status, lines = self.run_main(["includes", path])
        self.assertEqual(status, 0)
        self.assertEqual(lines, [f"2: include {header}"])

        status, lines = self.run_main(["includes", "-r", path])
        self.assertEqual(status, 0)
        self.assertEqual(
            lines,
            [
                f"{path} -> {header} (include)",
                f"{header} -> {other} (include)",
            ],
        )

    def test_defines_flag(self):
        """Check that -D macros are visible to conditionals"""
        self.write("a.h", "")
        path = self.write("main.c", '#ifdef FOO\n#include "a.h"\n#endif\n')

        status, lines = self.run_main(["includes", path])
        self.assertEqual(lines, [])

        status, lines = self.run_main(["includes", "-D", "FOO", path])
        self.assertEqual(len(lines), 1)

    def test_include_flag(self):
        """Check that -I directories are searched"""
        inc = os.path.join(self.root, "inc")
        os.mkdir(inc)
        header = os.path.join(inc, "sys.h")
        with open(header, "w") as f:
            f.write("")
        path = self.write("main.c", "#include <sys.h>\n")

        status, lines = self.run_main(["includes", path])
        self.assertEqual(lines, [])

        status, lines = self.run_main(["includes", "-I", inc, path])
        self.assertEqual(lines, [f"1: include {header}"])

    def test_verbosity(self):
        """Check that verbosity flags are accepted"""
        path = self.write("main.c", "")
        status, lines = self.run_main(["-v", "-v", "tokens", path])
        self.assertEqual(status, 0)
        self.assertEqual(lines, [])

        status, lines = self.run_main(["-q", "defines", path])
        self.assertEqual(status, 0)

    def test_nesting_limit(self):
        """Check that nesting too deep is an error"""
        self.write("a.h", "")
        path = self.write(
            "deep.c",
            "#if 1\n" * 40 + '#include "a.h"\n' + "#endif\n" * 40,
        )
        status, lines = self.run_main(["includes", path])
        self.assertEqual(status, 1)
        self.assertEqual(lines, [])

        status, lines = self.run_main(["includes", "-r", path])
        self.assertEqual(status, 0)

    def test_missing(self):
        """Check that a missing file is an error"""
        missing = os.path.join(self.root, "missing.c")
        status, lines = self.run_main(["tokens", missing])
        self.assertEqual(status, 1)
        self.assertEqual(lines, [])


if __name__ == "__main__":
    unittest.main()
