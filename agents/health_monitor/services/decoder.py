"""
Instruction Decoder — Decodes the lending program's instruction payloads.

Anchor encodes an instruction as an 8-byte discriminator
(sha256("global:<snake_case_name>")[:8]) followed by its borsh-encoded
arguments. Only the fixed-width little-endian argument types used by the
auto-repay instructions are supported.
"""
import hashlib
import re
import struct
from dataclasses import dataclass, field

# borsh scalar types -> struct format (little-endian)
ARG_FORMATS = {
    "u8": "B",
    "bool": "?",
    "u16": "H",
    "u32": "I",
    "u64": "Q",
    "i64": "q",
}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{_snake_case(name)}".encode()).digest()[:8]


@dataclass(frozen=True)
class DecodedInstruction:
    name: str
    args: dict = field(default_factory=dict)


@dataclass(frozen=True)
class InstructionLayout:
    name: str
    args: tuple[tuple[str, str], ...] = ()

    @property
    def discriminator(self) -> bytes:
        return instruction_discriminator(self.name)

    @property
    def _format(self) -> str:
        return "<" + "".join(ARG_FORMATS[arg_type] for _, arg_type in self.args)

    def decode(self, data: bytes) -> DecodedInstruction | None:
        """Decode ``data`` or return None when it is not this instruction."""
        if data[:8] != self.discriminator:
            return None

        fmt = self._format
        payload = data[8:]
        if len(payload) < struct.calcsize(fmt):
            return None

        values = struct.unpack_from(fmt, payload)
        return DecodedInstruction(
            name=self.name,
            args={arg_name: value for (arg_name, _), value in zip(self.args, values)},
        )


INSTRUCTIONS = (
    InstructionLayout("AutoRepayStart", (("start_withdraw_balance", "u64"),)),
    InstructionLayout("AutoRepayDeposit"),
    InstructionLayout("AutoRepayWithdraw"),
    InstructionLayout("AutoRepayCheck"),
)

_BY_DISCRIMINATOR = {layout.discriminator: layout for layout in INSTRUCTIONS}


def decode_instruction(data: bytes) -> DecodedInstruction | None:
    layout = _BY_DISCRIMINATOR.get(bytes(data[:8]))
    if layout is None:
        return None
    return layout.decode(bytes(data))


def encode_instruction(name: str, **args) -> bytes:
    """Build instruction data for ``name``; used to replay instructions in tests and scripts."""
    for layout in INSTRUCTIONS:
        if layout.name == name:
            values = [args[arg_name] for arg_name, _ in layout.args]
            return layout.discriminator + struct.pack(layout._format, *values)
    raise KeyError(f"Unknown instruction {name}")
