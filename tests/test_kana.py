import os

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from isf_script_utility import kana
from isf_script_utility.common import IsfDecodeError, IsfError

MAX_EXAMPLES = int(os.getenv("ISF_PROP_EXAMPLES", "300"))

TABLE_PAIRS = sorted({(kana.KANA[i], kana.KANA[i + 1]) for i in range(0, 256, 2)})


def test_table_shape():
    """The kana table holds 128 byte pairs with the escape lead at 0xB8."""
    assert len(kana.KANA) == 256
    assert kana.KANA[0xB8] == 0x82
    assert kana.KANA[0xB9] == 0xED


def test_unpack_direct_indices():
    """Plain bytes below 0x7F index the table."""
    assert kana.unpack(b"\x15\x16\x17\x00") == [(0x82, 0xA0), (0x82, 0xA2), (0x82, 0xA4)]


def test_unpack_mixed_known_sequence():
    """Escape, raw pair and table index decode to the hand-computed pairs."""
    raw = b"\x5c\x07" + b"\x88\x9f" + b"\x15" + b"\x00"
    assert kana.unpack(raw) == [(0x82, 0x69), (0x88, 0x9F), (0x82, 0xA0)]


def test_unpack_escape_without_index():
    """0x5C followed by the terminator stands for table entry 0x5C."""
    assert kana.unpack(b"\x5c\x00") == [(0x82, 0xED)]
    assert kana.scan(b"\x5c\x00", 0) == 2


def test_unpack_stops_at_terminator():
    assert kana.unpack(b"\x15\x00\x16") == [(0x82, 0xA0)]
    assert kana.scan(b"\x15\x00\x16", 0) == 2


def test_scan_without_terminator_runs_to_end():
    assert kana.scan(b"\x15\x16", 0) == 2


@pytest.mark.parametrize("raw", [b"\x5c\x80\x00", b"\x5c\xff\x00"])
def test_unpack_rejects_bad_escape_index(raw):
    with pytest.raises(IsfDecodeError):
        kana.unpack(raw)


def test_truncated_pair_is_an_error():
    with pytest.raises(IsfDecodeError):
        kana.unpack(b"\x15\x88")
    with pytest.raises(IsfDecodeError):
        kana.scan(b"\x15\x88", 0)


@pytest.mark.parametrize(
    "pairs, packed",
    [
        ([(0x82, 0xA0)], b"\x15\x00"),
        ([(0x81, 0x40)], b"\x01\x00"),
        ([(0x82, 0x69)], b"\x5c\x07\x00"),
        ([(0x82, 0xED)], b"\x5c\x00"),
        ([(0x82, 0xED), (0x82, 0xA0)], b"\x5c\x5c\x15\x00"),
        ([(0x7F, 0x41)], b"\x7f\x41\x00"),
        ([(0x88, 0x9F)], b"\x88\x9f\x00"),
        ([], b"\x00"),
    ],
)
def test_pack_prefers_shortest_form(pairs, packed):
    assert kana.pack(pairs) == packed


def test_pack_rejects_low_pair_outside_table():
    with pytest.raises(IsfError):
        kana.pack([(0x41, 0x42)])


def test_text_units():
    """Single-byte characters ride in 0x7F pairs, double-byte ones as themselves."""
    packed = kana.pack_units(["Aあ"])
    assert packed == b"\x7f\x41\x15\x00"
    assert kana.packed_to_units(packed) == ["A", "あ"]


def test_odd_pairs_stay_raw():
    packed = b"\x7f\x82\xa1\x41\x00"
    assert kana.packed_to_units(packed) == [b"\x7f\x82", b"\xa1\x41"]
    assert kana.pack_units([b"\x7f\x82\xa1\x41"]) == packed


def test_longer_forms_stay_verbatim():
    """A raw pair or long escape the table could shorten keeps its packed bytes."""
    packed = b"\x82\xa0" + b"\x5c\x15" + b"\x5c\x5c" + b"\x16\x00"
    units = kana.packed_to_units(packed)
    assert units == [b"\x82\xa0", b"\x5c\x15", "わ", "い"]
    assert kana.pack_units(units) == packed


def test_escape_entry_text_depends_on_position():
    assert kana.packed_to_units(b"\x5c\x5c\x15\x00") == ["わ", "あ"]
    assert kana.packed_to_units(b"\x5c\x00") == ["わ"]
    assert kana.pack_units(["わあ"]) == b"\x5c\x5c\x15\x00"
    assert kana.pack_units(["わ"]) == b"\x5c\x00"


def test_unencodable_text_is_an_error():
    with pytest.raises(IsfError):
        kana.pack_units(["\U0001F600"])


pair_strategy = st.one_of(
    st.sampled_from(TABLE_PAIRS),
    st.tuples(st.integers(0x7F, 0xFF), st.integers(0x00, 0xFF)),
    st.tuples(st.just(0x82), st.integers(0x00, 0xFF)),
)


@given(pairs=st.lists(pair_strategy, max_size=40))
@settings(
    max_examples=MAX_EXAMPLES,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
def test_pack_unpack_round_trip(pairs):
    packed = kana.pack(pairs)
    assert kana.scan(packed, 0) == len(packed)
    assert kana.unpack(packed) == pairs


@given(pairs=st.lists(pair_strategy, max_size=40))
@settings(max_examples=MAX_EXAMPLES, deadline=None)
def test_pack_is_stable(pairs):
    """Re-packing an unpacked string gives the same bytes."""
    packed = kana.pack(pairs)
    assert kana.pack(kana.unpack(packed)) == packed


token_strategy = st.one_of(
    st.integers(1, 0x7E).filter(lambda b: b != kana.ESCAPE).map(lambda b: bytes((b,))),
    st.integers(1, 0x7F).map(lambda i: bytes((kana.ESCAPE, i))),
    st.tuples(st.integers(0x7F, 0xFF), st.integers(0x00, 0xFF)).map(bytes),
)


@given(toks=st.lists(token_strategy, max_size=40), lone_escape=st.booleans())
@settings(max_examples=MAX_EXAMPLES, deadline=None)
def test_any_packed_string_survives_text_units(toks, lone_escape):
    """Whatever form each character was stored in, text units give it back."""
    raw = b"".join(toks) + (b"\x5c" if lone_escape else b"") + b"\x00"
    assert kana.pack_units(kana.packed_to_units(raw)) == raw
