"""Core data structures for the Warden abstract domain."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from ..constants import MASK32, MASK64, NUM_REGISTERS


@dataclass(frozen=True)
class Instruction:
    """A single decoded instruction slot."""

    opcode: int
    dst: int = 0
    src: int = 0
    offset: int = 0
    imm: int = 0

    def __post_init__(self):
        if not 0 <= self.opcode <= 0xFF:
            raise ValueError(f"Opcode {self.opcode!r} does not fit in a byte")
        if not 0 <= self.dst <= 0xF or not 0 <= self.src <= 0xF:
            raise ValueError("Register fields must fit in four bits")
        if not -0x8000 <= self.offset <= 0x7FFF:
            raise ValueError(f"Offset {self.offset} does not fit in 16 signed bits")
        if not -0x80000000 <= self.imm <= 0x7FFFFFFF:
            raise ValueError(f"Immediate {self.imm} does not fit in 32 signed bits")

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return (
            f"Instruction(0x{self.opcode:02x}, dst=r{self.dst}, src=r{self.src}, "
            f"off={self.offset:+d}, imm={self.imm})"
        )


class Top:
    """The scalar carrying no information."""

    _instance = None

    def __new__(cls) -> "Top":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "⊤"

    def __reduce__(self):
        return (Top, ())


TOP = Top()


@dataclass(frozen=True)
class Known:
    """A register holding exactly ``value`` on every path reaching a point."""

    value: int

    def __post_init__(self):
        if not isinstance(self.value, int) or not 0 <= self.value <= MASK64:
            raise ValueError(f"Known value {self.value!r} is not an unsigned 64-bit int")

    @property
    def low32(self) -> int:
        return self.value & MASK32

    def __repr__(self) -> str:
        return hex(self.value)


Scalar = Union[Top, Known]


def known(value: int) -> Known:
    """Build a ``Known`` scalar, wrapping *value* to 64 bits."""

    return Known(value & MASK64)


def is_known(value: Scalar) -> bool:
    return isinstance(value, Known)


class Unreached:
    """Bottom: no concrete execution reaches this program point."""

    _instance = None

    def __new__(cls) -> "Unreached":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Unreached"

    def __reduce__(self):
        return (Unreached, ())


UNREACHED = Unreached()


@dataclass(frozen=True)
class Reachable:
    """Eleven scalar register values, indexed by register number."""

    registers: tuple

    def __post_init__(self):
        regs = tuple(self.registers)
        if len(regs) != NUM_REGISTERS:
            raise ValueError(
                f"Abstract state needs {NUM_REGISTERS} registers, got {len(regs)}"
            )
        for reg in regs:
            if not isinstance(reg, (Top, Known)):
                raise TypeError(f"Register value must be Top or Known, got {reg!r}")
        object.__setattr__(self, "registers", regs)

    def __getitem__(self, index: int) -> Scalar:
        return self.registers[index]

    def __iter__(self):
        return iter(self.registers)

    def __len__(self) -> int:
        return NUM_REGISTERS

    def replace(self, index: int, value: Scalar) -> "Reachable":
        """Return a copy with register *index* set to *value*."""

        if not 0 <= index < NUM_REGISTERS:
            raise IndexError(f"Register r{index} does not exist")
        regs = list(self.registers)
        regs[index] = value
        return Reachable(tuple(regs))

    def clobber(self, indices: Iterable[int]) -> "Reachable":
        """Return a copy with every register in *indices* set to ``Top``."""

        regs = list(self.registers)
        for index in indices:
            regs[index] = TOP
        return Reachable(tuple(regs))


AbstractState = Union[Unreached, Reachable]


def registers_of(state: AbstractState) -> tuple:
    """Return the register tuple of a reachable state."""

    if not isinstance(state, Reachable):
        raise RuntimeError("Cannot read the registers of an unreached state")
    return state.registers


__all__ = [
    "AbstractState",
    "Instruction",
    "Known",
    "Reachable",
    "Scalar",
    "TOP",
    "Top",
    "UNREACHED",
    "Unreached",
    "is_known",
    "known",
    "registers_of",
]
