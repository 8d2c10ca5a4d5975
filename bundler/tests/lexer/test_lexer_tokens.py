#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from csb_lexer import Lexer, LexerError, TokenKind


def kinds_and_texts(src: str):
    tokens = Lexer.from_source(src).tokenize()
    return [(t.kind, t.text) for t in tokens]


def test_nested_generic_closers_are_separate_gt_tokens():
    assert kinds_and_texts("List<List<int>> x;") == [
        (TokenKind.IDENT, "List"),
        (TokenKind.LT, "<"),
        (TokenKind.IDENT, "List"),
        (TokenKind.LT, "<"),
        (TokenKind.PREDEFINED_TYPE, "int"),
        (TokenKind.GT, ">"),
        (TokenKind.GT, ">"),
        (TokenKind.IDENT, "x"),
        (TokenKind.SEMI, ";"),
        (TokenKind.EOF, ""),
    ]


def test_shift_right_is_two_gt_tokens_and_shift_left_is_one_operator():
    toks = kinds_and_texts("a >> 2 << 1")
    assert toks[1:3] == [(TokenKind.GT, ">"), (TokenKind.GT, ">")]
    assert (TokenKind.OP, "<<") in toks


def test_numeric_literal_forms():
    tokens = Lexer.from_source("0x1F 0b1010 1_000L 3.5e2f .5m 10UL").tokenize()
    assert [t.kind for t in tokens[:-1]] == [TokenKind.NUMBER] * 6
    assert [t.text for t in tokens[:-1]] == ["0x1F", "0b1010", "1_000L", "3.5e2f", ".5m", "10UL"]


def test_string_and_char_literals():
    src = r'"a\"b" @"c""d" ' + "'x' '\\n'"
    tokens = Lexer.from_source(src).tokenize()
    assert [(t.kind, t.text) for t in tokens[:-1]] == [
        (TokenKind.STRING, r'"a\"b"'),
        (TokenKind.STRING, '@"c""d"'),
        (TokenKind.CHAR, "'x'"),
        (TokenKind.CHAR, "'\\n'"),
    ]


def test_raw_string_literal_is_one_token():
    src = '"""a "quoted" b""" ;'
    tokens = Lexer.from_source(src).tokenize()
    assert tokens[0].kind is TokenKind.STRING
    assert tokens[0].text == '"""a "quoted" b"""'
    assert tokens[1].kind is TokenKind.SEMI


def test_interpolated_string_holes_are_tokenized_with_positions():
    src = '$"{p.X}:{Count(a, b),5:F2}"'
    tokens = Lexer.from_source(src).tokenize()

    tok = tokens[0]
    assert tok.kind is TokenKind.INTERPOLATED_STRING
    assert tok.text == src
    assert tok.holes is not None and len(tok.holes) == 2

    first, second = tok.holes
    assert [t.text for t in first] == ["p", ".", "X", ""]
    assert first[0].line == 1
    assert first[0].column == 4
    assert first[0].start == 3
    assert [t.text for t in second] == ["Count", "(", "a", ",", "b", ")", ""]


def test_escaped_braces_are_not_holes():
    tokens = Lexer.from_source('$"{{literal}} {x}"').tokenize()
    assert len(tokens[0].holes) == 1
    assert tokens[0].holes[0][0].text == "x"


def test_comments_and_preprocessor_lines_are_skipped():
    src = "#region Setup\nint a; // trailing\n/* block\n comment */\n#endregion\n"
    assert kinds_and_texts(src) == [
        (TokenKind.PREDEFINED_TYPE, "int"),
        (TokenKind.IDENT, "a"),
        (TokenKind.SEMI, ";"),
        (TokenKind.EOF, ""),
    ]


def test_contextual_keywords_are_identifiers():
    toks = kinds_and_texts("var record global async partial")
    assert [k for k, _ in toks[:-1]] == [TokenKind.IDENT] * 5


def test_verbatim_identifier_drops_at_sign():
    toks = kinds_and_texts("@class")
    assert toks[0] == (TokenKind.IDENT, "class")


def test_byte_order_mark_is_ignored():
    tokens = Lexer.from_source("\ufeffint x;").tokenize()
    assert tokens[0].kind is TokenKind.PREDEFINED_TYPE
    assert tokens[0].column == 1
    assert tokens[0].start == 0


def test_token_positions_track_lines_and_columns():
    tokens = Lexer.from_source("class A\n{\n    int x;\n}").tokenize()
    x = next(t for t in tokens if t.text == "x")
    assert (x.line, x.column) == (3, 9)


def test_unterminated_string_reports_start_position():
    with pytest.raises(LexerError) as excinfo:
        Lexer.from_source('x = "abc').tokenize()

    assert "[LEX-0010]" in excinfo.value.message
    assert excinfo.value.line == 1
    assert excinfo.value.column == 5


def test_unterminated_block_comment():
    with pytest.raises(LexerError) as excinfo:
        Lexer.from_source("int a;\n/* open").tokenize()

    assert "[LEX-0070]" in excinfo.value.message
    assert (excinfo.value.line, excinfo.value.column) == (2, 1)


def test_unexpected_character():
    with pytest.raises(LexerError) as excinfo:
        Lexer("int `x", filename="Bad.cs").tokenize()

    assert "[LEX-0040]" in excinfo.value.message
    assert excinfo.value.filename == "Bad.cs"
    assert excinfo.value.column == 5
