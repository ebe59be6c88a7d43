# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import os
import tempfile
import unittest

from cppscan.conditional import ConditionalDepthError
from cppscan.preprocessor import (
    DirectiveKind,
    EmbedParams,
    PreprocessorContext,
    Visit,
    iter_includes,
    scan_includes,
)


class TestScanIncludes(unittest.TestCase):
    """
    Test discovery of #include and #embed directives.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name
        for name in ["h1.h", "h2.h", "header.h"]:
            self.write(name, "")
        self.context = PreprocessorContext()

    def tearDown(self):
        self.context.close()
        self.tmp.cleanup()

    def write(self, name, content):
        path = os.path.join(self.root, name)
        with open(path, "w") as f:
            f.write(content)
        return path

    def scan(self, source, **kwargs):
        kwargs.setdefault("current_dir", self.root)
        return list(iter_includes(self.context, source, **kwargs))

    def test_include(self):
        """Check a simple quoted include"""
        found = self.scan('#include "h1.h"\n')
        self.assertEqual(len(found), 1)
        info = found[0]
        self.assertEqual(info.kind, DirectiveKind.INCLUDE)
        self.assertEqual(info.raw_path, "h1.h")
        self.assertEqual(info.resolved_path, os.path.join(self.root, "h1.h"))
        self.assertFalse(info.is_system)
        self.assertEqual(info.params, EmbedParams())
        self.assertEqual(info.line, 1)

    def test_system_include(self):
        """Check an include written with angle brackets"""
        inc = os.path.join(self.root, "inc")
        os.mkdir(inc)
        with open(os.path.join(inc, "sys.h"), "w") as f:
            f.write("")
        self.context.add_search_path(inc)

        found = self.scan("#  include <sys.h> // comment\n")
        self.assertEqual(len(found), 1)
        self.assertTrue(found[0].is_system)
        self.assertEqual(found[0].raw_path, "sys.h")
        self.assertEqual(found[0].resolved_path, os.path.join(inc, "sys.h"))

        # System includes do not search the current directory.
        self.assertEqual(self.scan("#include <h1.h>\n"), [])

    def test_unresolved(self):
        """Check that unresolved includes are not reported"""
        source = '#include "missing.h"\n#include <missing.h>\n#include\n'
        self.assertEqual(self.scan(source), [])

    def test_ifdef(self):
        """Check that #ifdef sees macros defined by the file"""
        source = '#define FOO\n#ifdef FOO\n#include "header.h"\n#endif\n'
        self.assertEqual(len(self.scan(source)), 1)

        # The scan must not modify the context.
        self.assertEqual(len(self.context.macros), 0)

        source = '#ifndef FOO\n#include "header.h"\n#endif\n'
        self.assertEqual(len(self.scan(source)), 1)
        self.context.add_macro("FOO")
        self.assertEqual(self.scan(source), [])

    def test_define_in_disabled_region(self):
        """Check that #define is ignored in a disabled region"""
        source = (
            "#if 0\n#define FOO\n#endif\n"
            + '#ifdef FOO\n#include "h1.h"\n#endif\n'
        )
        self.assertEqual(self.scan(source), [])

    def test_if_else(self):
        """Check that only the taken branch is reported"""
        source = (
            '#if 0\n#include "h1.h"\n#else\n#include "h2.h"\n#endif\n'
        )
        found = self.scan(source)
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].raw_path, "h2.h")
        self.assertEqual(found[0].line, 4)

    def test_nested_if(self):
        """Check nested groups"""
        source = (
            "#if 1\n#if 0\n#include \"h1.h\"\n#elif 1\n"
            + '#include "h2.h"\n#endif\n#endif\n'
        )
        found = self.scan(source)
        self.assertEqual([i.raw_path for i in found], ["h2.h"])

    def test_elif_chain(self):
        """Check that only the first true branch is reported"""
        source = (
            "#if VERSION == 1\n#include \"h1.h\"\n"
            + "#elif VERSION == 2\n#include \"h2.h\"\n"
            + "#elif VERSION >= 2\n#include \"header.h\"\n"
            + "#endif\n"
        )
        self.context.add_macro("VERSION", "2")
        found = self.scan(source)
        self.assertEqual([i.raw_path for i in found], ["h2.h"])

    def test_has_include(self):
        """Check __has_include in a condition"""
        source = (
            '#if __has_include("h1.h")\n#include "h1.h"\n#endif\n'
            + '#if __has_include("missing.h")\n#include "h2.h"\n#endif\n'
        )
        found = self.scan(source)
        self.assertEqual([i.raw_path for i in found], ["h1.h"])

    def test_computed_include(self):
        """Check an include whose path is given by a macro"""
        found = self.scan('#define HDR "h1.h"\n#include HDR\n')
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].raw_path, "h1.h")

        self.context.add_search_path(self.root)
        found = self.scan("#define HDR <h2.h>\n#include HDR\n")
        self.assertEqual(len(found), 1)
        self.assertTrue(found[0].is_system)
        self.assertEqual(found[0].raw_path, "h2.h")

        self.assertEqual(self.scan("#include UNDEFINED\n"), [])

    def test_embed(self):
        """Check #embed and its parameters"""
        self.write("data.bin", "123")
        source = (
            '#embed "data.bin" limit(10) prefix(0x00, ) suffix( ,0xFF)\n'
        )
        found = self.scan(source)
        self.assertEqual(len(found), 1)
        info = found[0]
        self.assertEqual(info.kind, DirectiveKind.EMBED)
        self.assertEqual(info.params.limit, 10)
        self.assertEqual(info.params.prefix, "0x00, ")
        self.assertEqual(info.params.suffix, " ,0xFF")
        self.assertIsNone(info.params.if_empty)

    def test_embed_params(self):
        """Check less common #embed parameters"""
        self.write("data.bin", "123")
        self.context.add_macro("SIZE", "4")
        source = (
            '#embed "data.bin" __limit__(SIZE * 2) if_empty((0))'
            + " vendor::option(x) unknown(1)\n"
        )
        info = self.scan(source)[0]
        self.assertEqual(info.params.limit, 8)
        self.assertEqual(info.params.if_empty, "(0)")

        # Malformed parameter lists leave the defaults.
        for params in ["limit", "limit(1", "limit(1 +)", "1"]:
            info = self.scan(f'#embed "data.bin" {params}\n')[0]
            self.assertEqual(info.params, EmbedParams())

    def test_directives_in_comments(self):
        """Check that comments and literals do not hold directives"""
        source = (
            '/* #include "h1.h" */\n'
            + '// #include "h1.h"\n'
            + 'const char *s = "#include \\"h1.h\\"";\n'
        )
        self.assertEqual(self.scan(source), [])

    def test_malformed_conditionals(self):
        """Check that malformed conditionals do not stop the scan"""
        source = '#else\n#endif\n#include "h1.h"\n'
        self.assertEqual(len(self.scan(source)), 1)

        source = '#if 1\n#else\n#else\n#include "h1.h"\n#endif\n'
        self.assertEqual(self.scan(source), [])

        source = '#if (1\n#include "h1.h"\n#endif\n#include "h2.h"\n'
        found = self.scan(source)
        self.assertEqual([i.raw_path for i in found], ["h2.h"])

        source = '#if 1\n#include "h1.h"\n'
        self.assertEqual(len(self.scan(source)), 1)

    def test_depth(self):
        """Check the nesting limit"""
        source = "#if 1\n" * 3 + '#include "h1.h"\n' + "#endif\n" * 3
        with self.assertRaises(ConditionalDepthError):
            self.scan(source, max_depth=2)

        source = "#if 1\n" * 40 + '#include "h1.h"\n' + "#endif\n" * 40
        self.assertEqual(len(self.scan(source, max_depth=None)), 1)

    def test_visitor(self):
        """Check that a visitor can stop the scan"""
        source = '#include "h1.h"\n#include "h2.h"\n#include "header.h"\n'
        seen = []

        def stop(info):
            seen.append(info.raw_path)
            return Visit.STOP

        count = scan_includes(
            self.context,
            source,
            stop,
            current_dir=self.root,
        )
        self.assertEqual(count, 1)
        self.assertEqual(seen, ["h1.h"])

        count = scan_includes(
            self.context,
            source,
            lambda info: None,
            current_dir=self.root,
        )
        self.assertEqual(count, 3)

        count = self.context.scan_includes(
            source,
            lambda info: Visit.CONTINUE,
            current_dir=self.root,
        )
        self.assertEqual(count, 3)

    def test_lazy(self):
        """Check that includes are produced on demand"""
        source = '#include "h1.h"\n#include "h2.h"\n'
        it = iter_includes(self.context, source, current_dir=self.root)
        self.assertEqual(next(it).raw_path, "h1.h")
        self.assertEqual(next(it).raw_path, "h2.h")
        with self.assertRaises(StopIteration):
            next(it)

    def test_filename(self):
        """Check that the directory of the file is searched first"""
        main = self.write("main.c", '#include "h1.h"\n')
        with open(main, "rb") as f:
            source = f.read()
        found = list(iter_includes(self.context, source, filename=main))
        self.assertEqual(len(found), 1)
        expected = os.path.join(self.root, "h1.h")
        self.assertEqual(found[0].resolved_path, expected)

    def test_validation(self):
        """Check arguments are valid"""
        with self.assertRaises(TypeError):
            iter_includes(object(), "")
        with self.assertRaises(TypeError):
            iter_includes(self.context, 1)
        with self.assertRaises(TypeError):
            scan_includes(self.context, "", "not callable")


if __name__ == "__main__":
    unittest.main()
