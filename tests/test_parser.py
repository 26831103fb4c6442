import pytest

from isf_script_utility import Action, Assembler, Opcode, compile
from isf_script_utility.common import IsfSyntaxError
from isf_script_utility.LA import parse_literal, parse_value, split_args
from isf_script_utility.operand import (
    COND_HS,
    COND_JP,
    Assignment,
    CString,
    Label,
    LabelTable,
    Message,
    MessagePart,
    PackedString,
    RawByte,
    Term,
    UInt8,
    UInt16,
    UInt24,
    UInt32,
    Value,
)

HEAD = "; version: 9597\n; encoding: cp932\n"


@pytest.mark.parametrize(
    "tok, op",
    [
        ("0x01", UInt8(1)),
        ("0x0102", UInt16(0x102)),
        ("0x010203", UInt24(0x10203)),
        ("0x01020304", UInt32(0x1020304)),
        ("12", Value(12)),
        ("-1", Value(0x3FFFFFFF)),
        ("RAND(3)", Value(0x40000003)),
        ("&0010", Value(0x80000010)),
        ("$0010", Value(0xC0000010)),
        ("LABEL_7", Label(7)),
        ("'ab'", CString(b"ab\x00")),
        ("`あ`", PackedString(b"\x15\x00")),
        ("&0001 = + 5", Assignment(1, ((0, Value(5)),))),
    ],
)
def test_literal_dispatch(tok, op):
    assert parse_literal(tok) == op


@pytest.mark.parametrize("tok", ["0x1", "0x123", "zz", "&", "RAND(x)", "LABEL_x", "'ab", ""])
def test_bad_literals(tok):
    with pytest.raises(ValueError):
        parse_literal(tok)


def test_value_range():
    assert parse_value(str((1 << 29) - 1)).number == (1 << 29) - 1
    assert parse_value(str(-(1 << 29))).number == -(1 << 29)
    with pytest.raises(ValueError):
        parse_value(str(1 << 29))
    with pytest.raises(ValueError):
        parse_value("&40000000")


def test_split_args_respects_quotes_and_lists():
    s = "'a, b', `c\\`,`, &0001, [LABEL_0, LABEL_1], 0x01"
    assert split_args(s) == ["'a, b'", "`c\\`,`", "&0001", "[LABEL_0, LABEL_1]", "0x01"]


def test_string_escapes():
    assert parse_literal("'it\\'s\\n'") == CString(b"it's\n\x00")
    assert parse_literal("'\\x82\\u0001'") == CString(b"\x82\x01\x00")


def test_header_defaults(monkeypatch):
    monkeypatch.delenv("ISF_SSU_VERSION", raising=False)
    asm = compile("    ED\n")
    assert asm.version == 0x9597
    assert asm.encoding == "cp932"
    monkeypatch.setenv("ISF_SSU_VERSION", "2567")
    assert compile("    ED\n").version == 0x2567


def test_encoding_aliases():
    assert compile("; encoding: Shift-JIS\n    ED\n").encoding == "cp932"


def test_label_marker_and_jump():
    """A label at the start and a JP to it: LABEL_0 maps to action 0."""
    asm = compile(HEAD + "#LABEL_0:\n    JP LABEL_0\n")
    assert asm.labels == (0,)
    assert asm.actions == (Action(Opcode.JP, (Label(0),)),)
    again = Assembler.from_bytes(asm.to_bytes())
    assert again.labels == (0,)
    assert "    JP LABEL_0\n" in again.to_text()


def test_label_gaps_are_unresolved():
    asm = compile(HEAD + "#LABEL_2:\n    ED\n")
    assert asm.labels == (None, None, 0)


def test_message_block():
    text = HEAD + (
        "    PM 0x00\n"
        "        0x01, 0x00, 0x00, 0x00, 0x00\n"
        "        0x05\n"
        "        0xFF, `あい`\n"
        "    END PM\n"
    )
    asm = compile(text)
    assert asm.actions == (
        Action(
            Opcode.PM,
            (
                UInt8(0),
                Message(
                    (
                        MessagePart(1, (UInt8(0),) * 4),
                        MessagePart(5),
                        MessagePart(0xFF, (PackedString(b"\x15\x16\x00"),)),
                    )
                ),
            ),
        ),
    )
    assert asm.to_bytes()[12:] == b"\x2b\x0d\x00\x01\x00\x00\x00\x00\x05\xff\x15\x16\x00"


def test_mpm_without_flag_is_one_line():
    asm = compile(HEAD + "    MPM 0x00, 0x03\n    ED\n")
    assert [a.instruction for a in asm.actions] == [Opcode.MPM, Opcode.ED]


def test_condition_block():
    text = HEAD + (
        "    IF &0001 == 5\n"
        "        AND &0002 < 3\n"
        "        AND/0x03 RAND(2) ?0x09 -4\n"
        "        HS 0x0009, 1\n"
        "    END IF\n"
    )
    cond = compile(text).actions[0].args[0]
    assert cond.terms == (
        Term(Value(0x80000001), 0, Value(5)),
        Term(Value(0x80000002), 1, Value(3)),
        Term(Value(0x40000002), 9, Value.make(0, -4)),
    )
    assert cond.links == (0x02, 0x03)
    assert cond.action == COND_HS
    assert cond.action_args == (UInt16(9), Value(1))


def test_condition_jump_and_trailing_bytes():
    text = HEAD + "    IF 1 != 2\n        JP LABEL_0\n    END IF 0x07\n#LABEL_0:\n"
    asm = compile(text)
    cond, tail = asm.actions[0].args
    assert cond.action == COND_JP
    assert tail == RawByte(7)
    assert asm.labels == (1,)


def test_jump_table():
    asm = compile(HEAD + "#LABEL_0:\n    ONJP &0003, [LABEL_0, LABEL_1]\n#LABEL_1:\n")
    table = LabelTable(Value(0x80000003), (Label(0), Label(1)))
    assert asm.actions[0].args == (table,)


def test_text_is_canonicalised_through_the_schema():
    """Extra bytes on a fixed-shape instruction come back as raw bytes."""
    asm = compile(HEAD + "    CWC 0x01, 0x02\n")
    assert asm.actions[0].args == (UInt8(1), RawByte(2))


@pytest.mark.parametrize(
    "body, line_no",
    [
        ("    ED\n    NOPE 1\n", 4),
        ("    PM 0x00\n        0x05\n", 3),
        ("    IF 1 == 1\n        XX\n    END IF\n", 4),
        ("    LS 'abc\n", 3),
        ("    CSET 0x01\n", 3),
        ("#LABEL_0:\n#LABEL_0:\n", 4),
        ("    JP [LABEL_0]\n", 3),
        ("    JP LABEL_7\n", 3),
        ("#LABEL_2:\n    ED\n    JP LABEL_0\n", 5),
        ("#LABEL_0:\n    ONJP 1, [LABEL_0, LABEL_1]\n", 4),
        ("#LABEL_0:\n    IF 1 == 1\n        JP LABEL_3\n    END IF\n", 4),
        ("    ; frame: 80\n    RT\n", 3),
        ("    ; frame: 05\n    RT\n", 3),
        ("    ; frame: 00\n    ; frame: 00\n    RT\n", 4),
        ("    ED\n    ; frame: 00\n", 4),
        ("    IF 1 == 1\n        NOEND\n    END IF\n", 4),
    ],
)
def test_syntax_errors_carry_line(body, line_no):
    with pytest.raises(IsfSyntaxError) as ei:
        compile(HEAD + body)
    assert ei.value.line_no == line_no


def test_undefined_jump_target_is_an_error():
    with pytest.raises(IsfSyntaxError) as ei:
        compile("    JP LABEL_7\n").to_bytes()
    assert ei.value.line_no == 1
    assert "LABEL_7" in str(ei.value)


def test_noend_keeps_condition_open():
    text = HEAD + "#LABEL_0:\n    IF 1 == 2\n        JP LABEL_0\n        NOEND\n    END IF 0x07\n"
    asm = compile(text)
    cond, tail = asm.actions[0].args
    assert not cond.closed
    assert tail == RawByte(7)
    assert asm.to_bytes()[12:] == bytes.fromhex("470f 01000000 00 02000000 00 0000 07")


def test_frame_line_sets_length_bytes():
    asm = compile(HEAD + "    ; frame: 80 02\n    RT\n    ; frame: 02\n    ED\n")
    assert asm.actions[0].frame == b"\x80\x02"
    assert asm.actions[1].frame is None
    assert asm.to_bytes()[8:] == b"\x06\x80\x02\x00\x02"


def test_padding_header():
    asm = compile(HEAD + "; padding: 01 02 03\n    ED\n")
    assert asm.padding == b"\x01\x02\x03"
    assert asm.to_bytes()[:4] == b"\x0b\x00\x00\x00"
    with pytest.raises(IsfSyntaxError):
        compile("; padding: 01 02 03 04\n    ED\n")
    with pytest.raises(IsfSyntaxError):
        compile("; padding: zz\n    ED\n")


def test_header_comments_only_count_before_the_code():
    asm = compile(HEAD + "    ED\n; version: notes\n; encoding: later\n")
    assert asm.version == 0x9597
    assert asm.encoding == "cp932"


def test_first_header_line_wins():
    assert compile("; version: 2567\n; version: 9597\n    ED\n").version == 0x2567
