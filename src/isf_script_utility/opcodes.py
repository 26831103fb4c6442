"""ISF instruction set.

Every byte value is a named opcode; reserved codes are named UNK_xx. SHAPES
lists the operand readers of the opcodes whose layout is fixed, the handful
whose layout depends on the operand bytes themselves are resolved by
readers_for(). Opcodes with no entry decode every operand byte as RawByte.
"""

from enum import IntEnum

from .operand import (
    read_operands,
    rd_assignment,
    rd_condition,
    rd_cstring,
    rd_label,
    rd_message,
    rd_table,
    rd_u8,
    rd_u16,
    rd_u24,
    rd_u32,
    rd_value,
)


class Opcode(IntEnum):
    # flow
    ED = 0x00
    LS = 0x01
    LSBS = 0x02
    SRET = 0x03
    JP = 0x04
    JS = 0x05
    RT = 0x06
    ONJP = 0x07
    ONJS = 0x08
    CHILD = 0x09
    URL = 0x0A
    UNK_0B = 0x0B
    UNK_0C = 0x0C
    UNK_0D = 0x0D
    UNK_0E = 0x0E
    UNK_0F = 0x0F
    # text windows
    CW = 0x10
    CP = 0x11
    CIR = 0x12
    CPS = 0x13
    CIP = 0x14
    CSET = 0x15
    CWO = 0x16
    CWC = 0x17
    CC = 0x18
    CCLR = 0x19
    CRESET = 0x1A
    CRND = 0x1B
    CTEXT = 0x1C
    UNK_1D = 0x1D
    UNK_1E = 0x1E
    UNK_1F = 0x1F
    # waits, fonts, messages
    WS = 0x20
    WP = 0x21
    WL = 0x22
    WW = 0x23
    CN = 0x24
    CNS = 0x25
    PF = 0x26
    PB = 0x27
    PJ = 0x28
    WO = 0x29
    WC = 0x2A
    PM = 0x2B
    PMP = 0x2C
    WSH = 0x2D
    WSS = 0x2E
    UNK_2F = 0x2F
    # flags, system
    FLN = 0x30
    SK = 0x31
    SKS = 0x32
    HF = 0x33
    FT = 0x34
    SP = 0x35
    HP = 0x36
    STS = 0x37
    ES = 0x38
    EC = 0x39
    STC = 0x3A
    HN = 0x3B
    HXP = 0x3C
    UNK_3D = 0x3D
    UNK_3E = 0x3E
    UNK_3F = 0x3F
    # variables
    HLN = 0x40
    HS = 0x41
    HINC = 0x42
    HDEC = 0x43
    CALC = 0x44
    HSG = 0x45
    HT = 0x46
    IF = 0x47
    EXA = 0x48
    EXS = 0x49
    EXC = 0x4A
    SCP = 0x4B
    SSP = 0x4C
    UNK_4D = 0x4D
    UNK_4E = 0x4E
    UNK_4F = 0x4F
    # graphics
    VSET = 0x50
    GN = 0x51
    GF = 0x52
    GC = 0x53
    GI = 0x54
    GO = 0x55
    GL = 0x56
    GP = 0x57
    GB = 0x58
    GPB = 0x59
    GPJ = 0x5A
    PR = 0x5B
    GASTAR = 0x5C
    GASTOP = 0x5D
    GPI = 0x5E
    GPO = 0x5F
    GGE = 0x60
    GPE = 0x61
    GSCRL = 0x62
    GV = 0x63
    GAL = 0x64
    GAOPEN = 0x65
    GASET = 0x66
    GAPOS = 0x67
    GACLOSE = 0x68
    GADELETE = 0x69
    UNK_6A = 0x6A
    UNK_6B = 0x6B
    UNK_6C = 0x6C
    UNK_6D = 0x6D
    UNK_6E = 0x6E
    SGL = 0x6F
    # sound
    ML = 0x70
    MP = 0x71
    MF = 0x72
    MS = 0x73
    SER = 0x74
    SEP = 0x75
    SED = 0x76
    PCMON = 0x77
    PCML = 0x78
    PCMS = 0x79
    PCMEND = 0x7A
    SES = 0x7B
    BGMGETPOS = 0x7C
    SEGETPOS = 0x7D
    PCMGETPOS = 0x7E
    PCMCN = 0x7F
    # input
    IM = 0x80
    IC = 0x81
    IMS = 0x82
    IXY = 0x83
    IH = 0x84
    IG = 0x85
    IGINIT = 0x86
    IGRELEASE = 0x87
    IHK = 0x88
    IHKDEF = 0x89
    IHGL = 0x8A
    IHGC = 0x8B
    IHGP = 0x8C
    CLK = 0x8D
    IGN = 0x8E
    UNK_8F = 0x8F
    # disk access
    DAE = 0x90
    DAP = 0x91
    DAS = 0x92
    UNK_93 = 0x93
    UNK_94 = 0x94
    UNK_95 = 0x95
    UNK_96 = 0x96
    UNK_97 = 0x97
    UNK_98 = 0x98
    UNK_99 = 0x99
    UNK_9A = 0x9A
    UNK_9B = 0x9B
    UNK_9C = 0x9C
    UNK_9D = 0x9D
    UNK_9E = 0x9E
    SETINSIDEVOL = 0x9F
    # kid (message log) window
    KIDCLR = 0xA0
    KIDMOJI = 0xA1
    KIDPAGE = 0xA2
    KIDSET = 0xA3
    KIDEND = 0xA4
    KIDFN = 0xA5
    KIDHABA = 0xA6
    KIDSCAN = 0xA7
    UNK_A8 = 0xA8
    UNK_A9 = 0xA9
    UNK_AA = 0xAA
    UNK_AB = 0xAB
    UNK_AC = 0xAC
    UNK_AD = 0xAD
    SETKIDWNDPUTPOS = 0xAE
    SETMESWNDPUTPOS = 0xAF
    # misc
    INNAME = 0xB0
    NAMECOPY = 0xB1
    CHANGEWALL = 0xB2
    MSGBOX = 0xB3
    SETSMPRATE = 0xB4
    UNK_B5 = 0xB5
    UNK_B6 = 0xB6
    UNK_B7 = 0xB7
    UNK_B8 = 0xB8
    UNK_B9 = 0xB9
    UNK_BA = 0xBA
    UNK_BB = 0xBB
    UNK_BC = 0xBC
    CLKEXMCSET = 0xBD
    IRCLK = 0xBE
    IROPN = 0xBF
    UNK_C0 = 0xC0
    UNK_C1 = 0xC1
    UNK_C2 = 0xC2
    UNK_C3 = 0xC3
    UNK_C4 = 0xC4
    UNK_C5 = 0xC5
    UNK_C6 = 0xC6
    UNK_C7 = 0xC7
    UNK_C8 = 0xC8
    UNK_C9 = 0xC9
    UNK_CA = 0xCA
    UNK_CB = 0xCB
    UNK_CC = 0xCC
    UNK_CD = 0xCD
    UNK_CE = 0xCE
    UNK_CF = 0xCF
    # popups, multi-message
    PPTL = 0xD0
    PPABL = 0xD1
    PPTYPE = 0xD2
    PPORT = 0xD3
    PPCRT = 0xD4
    SABL = 0xD5
    MPM = 0xD6
    MPC = 0xD7
    PM2 = 0xD8
    MPM2 = 0xD9
    UNK_DA = 0xDA
    UNK_DB = 0xDB
    UNK_DC = 0xDC
    UNK_DD = 0xDD
    UNK_DE = 0xDE
    UNK_DF = 0xDF
    # gui parts
    TAGSET = 0xE0
    FRAMESET = 0xE1
    RBSET = 0xE2
    CBSET = 0xE3
    SLDRSET = 0xE4
    OPSL = 0xE5
    OPPROP = 0xE6
    DISABLE = 0xE7
    ENABLE = 0xE8
    TITLE = 0xE9
    UNK_EA = 0xEA
    UNK_EB = 0xEB
    UNK_EC = 0xEC
    UNK_ED = 0xED
    UNK_EE = 0xEE
    EXT = 0xEF
    # config, video, timers
    CNF = 0xF0
    ATIMES = 0xF1
    AWAIT = 0xF2
    AVIP = 0xF3
    PPF = 0xF4
    SVF = 0xF5
    PPE = 0xF6
    SETGAMEINFO = 0xF7
    SETFONTSTYLE = 0xF8
    SETFONTCOLOR = 0xF9
    TIMERSET = 0xFA
    TIMEREND = 0xFB
    TIMERGET = 0xFC
    GRPOUT = 0xFD
    BREAK = 0xFE
    EXT_ = 0xFF


U8 = rd_u8
U16 = rd_u16
U24 = rd_u24
U32 = rd_u32
VALUE = rd_value
LABEL = rd_label
CSTR = rd_cstring
TABLE = rd_table
MESSAGE = rd_message
CONDITION = rd_condition
ASSIGNMENT = rd_assignment

SHAPES = {
    Opcode.LS: (CSTR,),
    Opcode.LSBS: (CSTR,),
    Opcode.JP: (LABEL,),
    Opcode.JS: (LABEL,),
    Opcode.ONJP: (TABLE,),
    Opcode.ONJS: (TABLE,),
    Opcode.CSET: (U8, U8, VALUE, VALUE, VALUE, VALUE, CSTR),
    Opcode.CWC: (U8,),
    Opcode.WP: (U16, CSTR),
    Opcode.CNS: (U8, U8, CSTR),
    Opcode.WO: (U8,),
    Opcode.WC: (U8,),
    Opcode.FLN: (U16,),
    Opcode.HLN: (U16,),
    Opcode.HS: (U16, VALUE),
    Opcode.HINC: (U16,),
    Opcode.HDEC: (U16,),
    Opcode.CALC: (ASSIGNMENT,),
    Opcode.IF: (CONDITION,),
    Opcode.VSET: (VALUE, VALUE, VALUE),
    Opcode.GL: (VALUE, CSTR),
    Opcode.GGE: (VALUE, VALUE, VALUE, VALUE, VALUE, CSTR),
    Opcode.ML: (CSTR, U8),
    Opcode.MF: (VALUE,),
    Opcode.SER: (CSTR, VALUE),
    Opcode.PCMON: (U8,),
    Opcode.PCML: (CSTR,),
    Opcode.IM: (U8, CSTR),
    Opcode.OPSL: (U8,),
    Opcode.EXT: (U8,),
    Opcode.CNF: (U8, CSTR),
    Opcode.ATIMES: (VALUE,),
    Opcode.AVIP: (U32, U32, U32, U32, CSTR),
    Opcode.PPF: (U8,),
    Opcode.SVF: (U8,),
    Opcode.SETGAMEINFO: (CSTR,),
    Opcode.SETFONTCOLOR: (U24,),
}


def _pm(data):
    return (U8, MESSAGE)


def _pmp(data):
    return (U16, MESSAGE)


def _mpm(data):
    if data and data[0]:
        return (U8, U8, MESSAGE)
    return (U8, U8)


def _sp(data):
    return (U8,) + (U16,) * ((len(data) - 1) // 2)


def _gp(data):
    return (U8,) + (VALUE,) * ((len(data) - 1) // 4)


def _gpio(data):
    return (VALUE,) * ((len(data) - 1) // 4) + (U8,)


DYNAMIC_SHAPES = {
    Opcode.PM: _pm,
    Opcode.PMP: _pmp,
    Opcode.MPM: _mpm,
    Opcode.SP: _sp,
    Opcode.GP: _gp,
    Opcode.GPI: _gpio,
    Opcode.GPO: _gpio,
}

# opcodes whose text form is a multi-line block closed by END <name>
MESSAGE_BLOCKS = (Opcode.PM, Opcode.PMP, Opcode.MPM)


def readers_for(op, data):
    fn = DYNAMIC_SHAPES.get(op)
    if fn is not None:
        return fn(data)
    return SHAPES.get(op, ())


def decode_operands(op, data) -> tuple:
    return read_operands(data, readers_for(op, data))
