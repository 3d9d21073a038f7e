"""Shared constant values for the Warden verifier."""

# Instruction classes
EBPF_CLS_MASK = 0x07
EBPF_CLS_LD = 0x00
EBPF_CLS_LDX = 0x01
EBPF_CLS_ST = 0x02
EBPF_CLS_STX = 0x03
EBPF_CLS_ALU = 0x04
EBPF_CLS_JMP = 0x05
EBPF_CLS_ALU64 = 0x07

EBPF_ALU_OP_MASK = 0xF0
EBPF_SRC_IMM = 0x00
EBPF_SRC_REG = 0x08

EBPF_SIZE_W = 0x00
EBPF_SIZE_H = 0x08
EBPF_SIZE_B = 0x10
EBPF_SIZE_DW = 0x18

EBPF_MODE_IMM = 0x00
EBPF_MODE_MEM = 0x60

# 32-bit ALU
EBPF_OP_ADD_IMM = 0x04
EBPF_OP_ADD_REG = 0x0C
EBPF_OP_SUB_IMM = 0x14
EBPF_OP_SUB_REG = 0x1C
EBPF_OP_MUL_IMM = 0x24
EBPF_OP_MUL_REG = 0x2C
EBPF_OP_DIV_IMM = 0x34
EBPF_OP_DIV_REG = 0x3C
EBPF_OP_OR_IMM = 0x44
EBPF_OP_OR_REG = 0x4C
EBPF_OP_AND_IMM = 0x54
EBPF_OP_AND_REG = 0x5C
EBPF_OP_LSH_IMM = 0x64
EBPF_OP_LSH_REG = 0x6C
EBPF_OP_RSH_IMM = 0x74
EBPF_OP_RSH_REG = 0x7C
EBPF_OP_NEG = 0x84
EBPF_OP_MOD_IMM = 0x94
EBPF_OP_MOD_REG = 0x9C
EBPF_OP_XOR_IMM = 0xA4
EBPF_OP_XOR_REG = 0xAC
EBPF_OP_MOV_IMM = 0xB4
EBPF_OP_MOV_REG = 0xBC
EBPF_OP_ARSH_IMM = 0xC4
EBPF_OP_ARSH_REG = 0xCC
EBPF_OP_LE = 0xD4
EBPF_OP_BE = 0xDC

# 64-bit ALU
EBPF_OP_ADD64_IMM = 0x07
EBPF_OP_ADD64_REG = 0x0F
EBPF_OP_SUB64_IMM = 0x17
EBPF_OP_SUB64_REG = 0x1F
EBPF_OP_MUL64_IMM = 0x27
EBPF_OP_MUL64_REG = 0x2F
EBPF_OP_DIV64_IMM = 0x37
EBPF_OP_DIV64_REG = 0x3F
EBPF_OP_OR64_IMM = 0x47
EBPF_OP_OR64_REG = 0x4F
EBPF_OP_AND64_IMM = 0x57
EBPF_OP_AND64_REG = 0x5F
EBPF_OP_LSH64_IMM = 0x67
EBPF_OP_LSH64_REG = 0x6F
EBPF_OP_RSH64_IMM = 0x77
EBPF_OP_RSH64_REG = 0x7F
EBPF_OP_NEG64 = 0x87
EBPF_OP_MOD64_IMM = 0x97
EBPF_OP_MOD64_REG = 0x9F
EBPF_OP_XOR64_IMM = 0xA7
EBPF_OP_XOR64_REG = 0xAF
EBPF_OP_MOV64_IMM = 0xB7
EBPF_OP_MOV64_REG = 0xBF
EBPF_OP_ARSH64_IMM = 0xC7
EBPF_OP_ARSH64_REG = 0xCF

# Memory
EBPF_OP_LDDW = 0x18
EBPF_OP_LDXW = 0x61
EBPF_OP_LDXH = 0x69
EBPF_OP_LDXB = 0x71
EBPF_OP_LDXDW = 0x79
EBPF_OP_STW = 0x62
EBPF_OP_STH = 0x6A
EBPF_OP_STB = 0x72
EBPF_OP_STDW = 0x7A
EBPF_OP_STXW = 0x63
EBPF_OP_STXH = 0x6B
EBPF_OP_STXB = 0x73
EBPF_OP_STXDW = 0x7B

# Jumps
EBPF_OP_JA = 0x05
EBPF_OP_JEQ_IMM = 0x15
EBPF_OP_JEQ_REG = 0x1D
EBPF_OP_JGT_IMM = 0x25
EBPF_OP_JGT_REG = 0x2D
EBPF_OP_JGE_IMM = 0x35
EBPF_OP_JGE_REG = 0x3D
EBPF_OP_JSET_IMM = 0x45
EBPF_OP_JSET_REG = 0x4D
EBPF_OP_JNE_IMM = 0x55
EBPF_OP_JNE_REG = 0x5D
EBPF_OP_JSGT_IMM = 0x65
EBPF_OP_JSGT_REG = 0x6D
EBPF_OP_JSGE_IMM = 0x75
EBPF_OP_JSGE_REG = 0x7D
EBPF_OP_CALL = 0x85
EBPF_OP_EXIT = 0x95
EBPF_OP_JLT_IMM = 0xA5
EBPF_OP_JLT_REG = 0xAD
EBPF_OP_JLE_IMM = 0xB5
EBPF_OP_JLE_REG = 0xBD
EBPF_OP_JSLT_IMM = 0xC5
EBPF_OP_JSLT_REG = 0xCD
EBPF_OP_JSLE_IMM = 0xD5
EBPF_OP_JSLE_REG = 0xDD

# Register file and memory regions
NUM_REGISTERS = 11
CONTEXT_REGISTER = 1
STACK_REGISTER = 10
STACK_SIZE = 128
CONTEXT_SIZE = 4096

MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF

INSTRUCTION_SIZE = 8
MAX_INSTRUCTIONS = 65536
MAX_HELPERS = 64

# Tooling
STATUS_COLORS = {
    "safe": "#8BC34A",
    "rejected": "#FF7043",
    "unreached": "#B0BEC5",
}
EDGE_STYLES = {
    "next": "solid",
    "jump": "solid",
    "taken": "solid",
    "not_taken": "dashed",
    "both": "solid",
}

CERTIFICATE_VERSION = "0.1"
LOGBOOK_FILE = "warden.logbook.jsonl"
KEY_FILE = "warden_private_key.pem"
PUB_FILE = "warden_public_key.pem"

__all__ = [name for name in dir() if name.isupper()]
