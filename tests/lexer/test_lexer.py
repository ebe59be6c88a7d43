# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import unittest

from cppscan.lexer import KEYWORDS, PUNCTUATORS, TokenKind, tokenize


def kinds(tokens):
    return [t.kind for t in tokens if not t.kind.is_trivia]


class TestLexer(unittest.TestCase):
    """
    Test ability to tokenize C source.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def assertTiles(self, source):
        tokens = tokenize(source)
        buffer = tokens.buffer
        offset = 0
        for token in tokens:
            self.assertEqual(token.offset, offset)
            self.assertGreater(token.length, 0)
            offset = token.end
        self.assertEqual(offset, len(buffer))
        return tokens

    def test_tiling(self):
        """Check that tokens cover every byte exactly once"""
        sources = [
            "",
            "int main(void) { return 0; }\n",
            "#define MAX(a,b) ((a)>(b)?(a):(b))\n",
            "/* unterminated",
            '"unterminated',
            "x\\\n",
            "??=include <stdio.h>\n??!??!",
            "a\\\r\nb @ ` $",
            "\\",
            "café = 1;",
            b"\xff\xfe\x00",
        ]
        for source in sources:
            self.assertTiles(source)

    def test_idempotent(self):
        """Check that tokenizing twice gives identical results"""
        source = "int x = a ??! b; // comment\n#if X\n"
        self.assertEqual(list(tokenize(source)), list(tokenize(source)))

    def test_trigraph_punctuator(self):
        """Check that ??!??! is a single ||"""
        tokens = self.assertTiles("??!??!")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.LOGICAL_OR)
        self.assertEqual(tokens[0].length, 6)

    def test_spliced_identifier(self):
        """Check that a splice inside an identifier is removed"""
        tokens = self.assertTiles("a\\\nb")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.IDENTIFIER)
        self.assertEqual(tokens[0].length, 4)
        self.assertEqual(tokens.spelling(0), "ab")
        self.assertEqual(tokens.text(0), "a\\\nb")

    def test_spliced_keyword(self):
        """Check that keywords are classified by logical spelling"""
        tokens = tokenize("in\\\nt")
        self.assertEqual(kinds(tokens), [TokenKind.KEYWORD_INT])

    def test_keywords(self):
        """Check keywords and identifiers"""
        tokens = tokenize("int integer _Bool bool __inline restrict")
        self.assertEqual(
            kinds(tokens),
            [
                TokenKind.KEYWORD_INT,
                TokenKind.IDENTIFIER,
                TokenKind.KEYWORD_BOOL,
                TokenKind.KEYWORD_BOOL,
                TokenKind.KEYWORD_INLINE,
                TokenKind.KEYWORD_RESTRICT,
            ],
        )
        for spelling, kind in KEYWORDS.items():
            self.assertEqual(kinds(tokenize(spelling)), [kind])

    def test_digit_separator(self):
        """Check digit separators in numbers"""
        tokens = self.assertTiles("123'456")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.NUMBER)
        self.assertEqual(tokens[0].length, 7)

        tokens = self.assertTiles("123'")
        self.assertEqual(tokens[0].kind, TokenKind.NUMBER)
        self.assertEqual(tokens[0].length, 3)
        self.assertEqual(tokens[1].kind, TokenKind.CHAR)

    def test_numbers(self):
        """Check preprocessing numbers"""
        tokens = tokenize("1e+5")
        self.assertEqual(kinds(tokens), [TokenKind.NUMBER])

        tokens = tokenize("0x1p-3")
        self.assertEqual(kinds(tokens), [TokenKind.NUMBER])

        tokens = tokenize("1+5")
        self.assertEqual(
            kinds(tokens),
            [TokenKind.NUMBER, TokenKind.PLUS, TokenKind.NUMBER],
        )

        tokens = tokenize(".5 0x1FULL 1.0f")
        self.assertEqual(kinds(tokens), [TokenKind.NUMBER] * 3)

    def test_comments(self):
        """Check line and block comments"""
        tokens = self.assertTiles("// c\nx")
        self.assertEqual(tokens[0].kind, TokenKind.COMMENT)
        self.assertEqual(tokens[0].length, 4)
        self.assertEqual(tokens[1].kind, TokenKind.WHITESPACE)
        self.assertEqual(tokens[2].kind, TokenKind.IDENTIFIER)

        tokens = self.assertTiles("/* a */b")
        self.assertEqual(tokens[0].kind, TokenKind.COMMENT)
        self.assertEqual(tokens[0].length, 7)

        tokens = self.assertTiles("/* unterminated")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.COMMENT)

        tokens = self.assertTiles("// spliced \\\ncomment\nx")
        self.assertEqual(tokens[0].kind, TokenKind.COMMENT)
        self.assertEqual(tokens.spelling(0), "// spliced comment")

    def test_literals(self):
        """Check string and character literals"""
        tokens = self.assertTiles('"a\\"b"')
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.STRING)

        tokens = self.assertTiles("'\\''")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.CHAR)

        tokens = self.assertTiles('"abc')
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.STRING)

    def test_encoding_prefixes(self):
        """Check literals with encoding prefixes"""
        tokens = self.assertTiles('L"x"')
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.STRING)

        tokens = self.assertTiles("u8'a'")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.CHAR)

        tokens = tokenize("L u8")
        self.assertEqual(kinds(tokens), [TokenKind.IDENTIFIER] * 2)

    def test_hash(self):
        """Check # and ## markers"""
        tokens = tokenize("# ## ??= %:%: %:")
        self.assertEqual(
            kinds(tokens),
            [
                TokenKind.HASH,
                TokenKind.HASH_HASH,
                TokenKind.HASH,
                TokenKind.HASH_HASH,
                TokenKind.HASH,
            ],
        )

    def test_digraphs(self):
        """Check that digraphs map to the tokens they stand for"""
        tokens = tokenize("<: :> <% %>")
        self.assertEqual(
            kinds(tokens),
            [
                TokenKind.LBRACKET,
                TokenKind.RBRACKET,
                TokenKind.LBRACE,
                TokenKind.RBRACE,
            ],
        )

    def test_maximal_munch(self):
        """Check that the longest punctuator is matched"""
        tokens = tokenize(">>= ... .. ->")
        self.assertEqual(
            kinds(tokens),
            [
                TokenKind.RSHIFT_ASSIGN,
                TokenKind.ELLIPSIS,
                TokenKind.DOT,
                TokenKind.DOT,
                TokenKind.ARROW,
            ],
        )
        for spelling, kind in PUNCTUATORS.items():
            if kind in (TokenKind.HASH, TokenKind.HASH_HASH):
                continue
            self.assertEqual(kinds(tokenize(spelling)), [kind])

    def test_other(self):
        """Check characters that are not punctuators"""
        tokens = self.assertTiles("@`")
        self.assertEqual(kinds(tokens), [TokenKind.OTHER, TokenKind.OTHER])

    def test_identifiers(self):
        """Check universal character names and non-ASCII identifiers"""
        tokens = self.assertTiles("\\u00e9x")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].kind, TokenKind.IDENTIFIER)

        tokens = self.assertTiles("café")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens.spelling(0), "café")

    def test_trailing_splice(self):
        """Check a splice at the end of the buffer"""
        tokens = self.assertTiles("x\\\n")
        self.assertEqual(len(tokens), 2)
        self.assertEqual(tokens[0].kind, TokenKind.IDENTIFIER)
        self.assertEqual(tokens[0].length, 1)
        self.assertEqual(tokens[1].kind, TokenKind.WHITESPACE)
        self.assertEqual(tokens[1].length, 2)

    def test_token_list(self):
        """Check TokenList helpers"""
        tokens = tokenize("a\n  b /* c */")
        self.assertEqual(tokens.line_of(0), 1)
        self.assertEqual(tokens.line_of(2), 2)
        self.assertTrue(tokens.has_newline(1))
        self.assertFalse(tokens.has_newline(0))
        self.assertEqual(tokens.skip_trivia(1), 2)
        comment = tokens.find_next(0, len(tokens), TokenKind.COMMENT)
        self.assertEqual(comment, 4)
        self.assertEqual(tokens.text_between(0, 3), "a\n  b")
        self.assertTrue(tokens.matches(2, "b"))

    def test_invalid(self):
        """Check that invalid sources are rejected"""
        with self.assertRaises(TypeError):
            tokenize(None)


if __name__ == "__main__":
    unittest.main()
