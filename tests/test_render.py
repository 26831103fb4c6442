import pytest

from isf_script_utility import Action, Assembler, Opcode
from isf_script_utility.operand import (
    COND_HS,
    COND_JP,
    Assignment,
    Condition,
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
from isf_script_utility.render import format_operand, format_term, render, render_action


@pytest.mark.parametrize(
    "op, text",
    [
        (UInt8(0x0A), "0x0A"),
        (RawByte(0xFF), "0xFF"),
        (UInt16(0x1F), "0x001F"),
        (UInt24(0x10203), "0x010203"),
        (UInt32(1), "0x00000001"),
        (Value(7), "7"),
        (Value.make(0, -3), "-3"),
        (Value(0x40000003), "RAND(3)"),
        (Value(0x80000001), "&0001"),
        (Value(0xC00000AB), "$00AB"),
        (Value(0x8001ABCD), "&1ABCD"),
        (Label(4), "LABEL_4"),
        (LabelTable(Value(0x80000003), (Label(0), Label(1))), "&0003, [LABEL_0, LABEL_1]"),
        (Assignment(1, ((0, Value(5)), (1, Value(0x80000002)))), "&0001 = + 5 - &0002"),
    ],
)
def test_format_operand(op, text):
    assert format_operand(op, "cp932") == text


@pytest.mark.parametrize(
    "raw, text",
    [
        (b"abc\x00", "'abc'"),
        (b"it's\x00", "'it\\'s'"),
        (b"a\\b\n\x00", "'a\\\\b\\n'"),
        ("あい".encode("cp932") + b"\x00", "'あい'"),
        (b"a\x82\x00", "'a\\x82'"),
        (b"\x01\x7f\x00", "'\\u0001\\u007F'"),
        (b"ab", "'ab'"),
    ],
)
def test_format_cstring(raw, text):
    assert format_operand(CString(raw), "cp932") == text


def test_format_packed_string():
    op = PackedString(b"\x7f\x41\x15\x5c\x07\x7f\x60\x00")
    assert format_operand(op, "cp932") == "`AあＪ\\``"


def test_format_packed_string_keeps_odd_pairs_raw():
    assert format_operand(PackedString(b"\x7f\x82\x00"), "cp932") == "`\\x7F\\x82`"


def test_unknown_comparator():
    assert format_term(Term(Value(1), 9, Value(2))) == "1 ?0x09 2"


def test_blocks_are_not_inline():
    with pytest.raises(TypeError):
        format_operand(Message(()), "cp932")


def test_message_block_lines():
    msg = Message(
        (
            MessagePart(1, (UInt8(0),) * 4),
            MessagePart(5),
            MessagePart(0xFF, (PackedString(b"\x15\x16\x00"),)),
        )
    )
    lines = list(render_action(Action(Opcode.PM, (UInt8(0), msg)), "cp932"))
    assert lines == [
        "    PM 0x00",
        "        0x01, 0x00, 0x00, 0x00, 0x00",
        "        0x05",
        "        0xFF, `あい`",
        "    END PM",
    ]


def test_message_block_with_trailing_bytes():
    msg = Message((MessagePart(0xFF, (PackedString(b"\x15\x00"),)),))
    lines = list(render_action(Action(Opcode.PMP, (UInt16(3), msg, RawByte(9))), "cp932"))
    assert lines[0] == "    PMP 0x0003"
    assert lines[-1] == "    END PMP 0x09"


def test_condition_block_lines():
    cond = Condition(
        (Term(Value(0x80000001), 0, Value(5)), Term(Value(0x80000002), 1, Value(3))),
        (0x02,),
        COND_JP,
        (Label(0),),
    )
    assert list(render_action(Action(Opcode.IF, (cond,)), "cp932")) == [
        "    IF &0001 == 5",
        "        AND &0002 < 3",
        "        JP LABEL_0",
        "    END IF",
    ]


def test_condition_with_odd_link_and_assignment():
    cond = Condition(
        (Term(Value(1), 5, Value(2)), Term(Value(3), 2, Value(4))),
        (0x07,),
        COND_HS,
        (UInt16(0x10), Value(0x80000001)),
    )
    assert list(render_action(Action(Opcode.IF, (cond,)), "cp932")) == [
        "    IF 1 != 2",
        "        AND/0x07 3 <= 4",
        "        HS 0x0010, &0001",
        "    END IF",
    ]


def test_condition_must_come_first():
    cond = Condition((Term(Value(1), 0, Value(1)),), (), 0xFF, ())
    with pytest.raises(TypeError):
        list(render_action(Action(Opcode.IF, (UInt8(0), cond)), "cp932"))


def test_header_lines():
    asm = Assembler(version=0x2567, actions=(Action(Opcode.ED),), reserved=0x12)
    assert render(asm) == (
        "; version: 2567\n; encoding: cp932\n; reserved: 0012\n    ED\n"
    )


def test_labels_in_table_order():
    asm = Assembler(
        actions=(Action(Opcode.RT), Action(Opcode.ED)),
        labels=(1, None, 0, 1, 2),
    )
    assert render(asm).splitlines()[2:] == [
        "#LABEL_2:",
        "    RT",
        "#LABEL_0:",
        "#LABEL_3:",
        "    ED",
        "#LABEL_4:",
    ]


def test_packed_pair_with_shorter_form_stays_raw():
    assert format_operand(PackedString(b"\x82\xa0\x00"), "cp932") == "`\\x82\\xA0`"
    assert format_operand(PackedString(b"\x15\x00"), "cp932") == "`あ`"


def test_unclosed_condition_gets_noend_line():
    cond = Condition((Term(Value(1), 0, Value(2)),), (), COND_JP, (Label(0),), False)
    assert list(render_action(Action(Opcode.IF, (cond, RawByte(7))), "cp932")) == [
        "    IF 1 == 2",
        "        JP LABEL_0",
        "        NOEND",
        "    END IF 0x07",
    ]


def test_frame_and_padding_lines():
    asm = Assembler(
        actions=(Action(Opcode.RT, (), b"\x00"), Action(Opcode.ED)),
        padding=b"\xaa\xbb",
    )
    assert render(asm) == (
        "; version: 9597\n; encoding: cp932\n; padding: AA BB\n"
        "    ; frame: 00\n    RT\n    ED\n"
    )
