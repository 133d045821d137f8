"""
IR interpreter.

Executes functions directly from the llvmlite IR object model without
generating machine code. Values are plain Python objects: integers are
kept normalized to their type's width (unsigned view), floating point
values are Python floats (rounded to single precision for ``float``), and
pointers produced by ``alloca`` or module globals are ``Cell`` objects.

Supported: integer and floating arithmetic, bitwise ops and shifts,
``icmp``/``fcmp``, integer and floating casts, ``select``, ``phi``,
``br``, ``switch``, ``ret``, ``unreachable``, direct calls to functions
defined in the module, and scalar ``alloca``/``load``/``store``. Anything
else raises ``ExecutionError``.
"""
from __future__ import annotations

import math
import struct
from typing import Any, Callable, Dict, List, Optional, Union

from llvmlite import ir
from llvmlite.ir import instructions as irinst

from irhandle.internals.errors import raise_error


class Cell:
    """Storage for one scalar value (an ``alloca`` slot or a global)."""

    __slots__ = ("type", "value")

    def __init__(self, ty: ir.Type, value: Any) -> None:
        self.type = ty
        self.value = value

    def __repr__(self) -> str:
        return f"<Cell {self.type} = {self.value!r}>"


def mask(width: int) -> int:
    return (1 << width) - 1


def to_signed(value: int, width: int) -> int:
    value &= mask(width)
    if value >> (width - 1):
        return value - (1 << width)
    return value


def to_single(value: float) -> float:
    """Round *value* to IEEE single precision."""
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def normalize(ty: ir.Type, value: Any) -> Any:
    """Bring a Python value into the interpreter's representation for *ty*."""
    if isinstance(ty, ir.IntType):
        return int(value) & mask(ty.width)
    if isinstance(ty, ir.FloatType):
        return to_single(float(value))
    if isinstance(ty, (ir.DoubleType, ir.HalfType)):
        return float(value)
    return value


def zero_value(ty: ir.Type) -> Any:
    if isinstance(ty, ir.IntType):
        return 0
    if isinstance(ty, (ir.FloatType, ir.DoubleType, ir.HalfType)):
        return 0.0
    return None


def _is_float_type(ty: ir.Type) -> bool:
    return isinstance(ty, (ir.FloatType, ir.DoubleType, ir.HalfType))


def _sdiv(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _srem(a: int, b: int) -> int:
    return a - b * _sdiv(a, b)


def _shift_amount(b: int, width: int) -> Optional[int]:
    # Shifting by the bit width or more yields poison; treat it as zero.
    return b if b < width else None


_ICMP: Dict[str, Callable[[int, int], bool]] = {
    "eq":  lambda a, b: a == b,
    "ne":  lambda a, b: a != b,
    "ugt": lambda a, b: a > b,
    "uge": lambda a, b: a >= b,
    "ult": lambda a, b: a < b,
    "ule": lambda a, b: a <= b,
    "sgt": lambda a, b: a > b,
    "sge": lambda a, b: a >= b,
    "slt": lambda a, b: a < b,
    "sle": lambda a, b: a <= b,
}

_FCMP: Dict[str, Callable[[float, float], bool]] = {
    "eq": lambda a, b: a == b,
    "ne": lambda a, b: a != b,
    "gt": lambda a, b: a > b,
    "ge": lambda a, b: a >= b,
    "lt": lambda a, b: a < b,
    "le": lambda a, b: a <= b,
}


class Interpreter:
    """Runs functions of one llvmlite module.

    Calls between IR functions are pushed on an explicit frame stack, so
    the depth of IR recursion is not bounded by the Python stack.
    """

    def __init__(self, module: ir.Module) -> None:
        self.module = module
        self._globals: Dict[int, Cell] = {}

    # Entry point

    def call(self, fn: ir.Function, args: List[Any]) -> Any:
        """Execute *fn* with already-normalized argument values."""
        stack: List[_Frame] = [self._enter(fn, args)]
        while True:
            frame = stack[-1]
            signal = self._run(frame)
            if isinstance(signal, _Call):
                stack.append(self._enter(signal.callee, signal.args))
                continue

            stack.pop()
            if not stack:
                return signal.value
            caller = stack[-1]
            caller.values[id(caller.pending)] = signal.value
            caller.pending = None
            caller.pc += 1

    def _enter(self, fn: ir.Function, args: List[Any]) -> '_Frame':
        if fn.is_declaration:
            raise_error("IH0502", function=fn.name)
        frame = _Frame(fn)
        for param, value in zip(fn.args, args):
            frame.values[id(param)] = normalize(param.type, value)
        self._jump(frame, fn.blocks[0])
        return frame

    # Blocks

    def _run(self, frame: '_Frame') -> Union['_Call', '_Return']:
        """Run *frame* until it returns or calls another function."""
        fn, values = frame.fn, frame.values
        while True:
            instrs = frame.block.instructions
            if frame.pc >= len(instrs):
                raise_error("IH0507", block=frame.block.name, function=fn.name)
            instr = instrs[frame.pc]

            if isinstance(instr, irinst.Ret):
                if instr.return_value is None:
                    return _Return(None)
                return _Return(self._value(fn, instr.return_value, values))
            if isinstance(instr, irinst.Branch):
                self._jump(frame, instr.operands[0])
                continue
            if isinstance(instr, irinst.ConditionalBranch):
                cond, truebr, falsebr = instr.operands
                self._jump(frame, truebr if self._value(fn, cond, values) else falsebr)
                continue
            if isinstance(instr, irinst.SwitchInstr):
                self._jump(frame, self._switch_target(fn, instr, values))
                continue
            if isinstance(instr, irinst.Unreachable):
                raise_error("IH0505", function=fn.name)
            if isinstance(instr, irinst.CallInstr):
                callee = instr.callee
                if not isinstance(callee, ir.Function):
                    raise_error("IH0501", opname="indirect call", function=fn.name)
                frame.pending = instr
                return _Call(callee, [self._value(fn, a, values) for a in instr.args])

            values[id(instr)] = self._execute(fn, instr, values)
            frame.pc += 1

    def _jump(self, frame: '_Frame', target: ir.Block) -> None:
        # All phis of a block read their inputs before any of them is written
        instrs = target.instructions
        incoming = {}
        i = 0
        while i < len(instrs) and isinstance(instrs[i], irinst.PhiInstr):
            phi = instrs[i]
            incoming[id(phi)] = self._phi_value(frame.fn, phi, frame.block, frame.values)
            i += 1
        frame.values.update(incoming)
        frame.block = target
        frame.pc = i

    def _phi_value(self, fn: ir.Function, phi: irinst.PhiInstr, prev: Optional[ir.Block],
                   frame: Dict[int, Any]) -> Any:
        for value, blk in phi.incomings:
            if blk is prev:
                return self._value(fn, value, frame)
        raise_error("IH0509", name=phi.name, function=fn.name,
                    block=prev.name if prev is not None else "<entry>")

    def _switch_target(self, fn: ir.Function, instr: irinst.SwitchInstr,
                       frame: Dict[int, Any]) -> ir.Block:
        value = self._value(fn, instr.value, frame)
        for case_value, blk in instr.cases:
            if self._value(fn, case_value, frame) == value:
                return blk
        return instr.default

    # Instructions

    def _execute(self, fn: ir.Function, instr: irinst.Instruction, frame: Dict[int, Any]) -> Any:
        if isinstance(instr, irinst.ICMPInstr):
            return self._icmp(fn, instr, frame)
        if isinstance(instr, irinst.FCMPInstr):
            return self._fcmp(fn, instr, frame)
        if isinstance(instr, irinst.CastInstr):
            return self._cast(fn, instr, frame)
        if isinstance(instr, irinst.SelectInstr):
            cond = self._value(fn, instr.cond, frame)
            return self._value(fn, instr.lhs if cond else instr.rhs, frame)
        if isinstance(instr, irinst.AllocaInstr):
            ty = getattr(instr, "allocated_type", None) or instr.type.pointee
            return Cell(ty, zero_value(ty))
        if isinstance(instr, irinst.LoadInstr):
            return self._cell(fn, instr, instr.operands[0], frame).value
        if isinstance(instr, irinst.StoreInstr):
            value, ptr = instr.operands
            self._cell(fn, instr, ptr, frame).value = self._value(fn, value, frame)
            return None
        if type(instr) is irinst.Instruction:
            return self._arith(fn, instr, frame)
        raise_error("IH0501", opname=instr.opname, function=fn.name)

    def _arith(self, fn: ir.Function, instr: irinst.Instruction, frame: Dict[int, Any]) -> Any:
        op = instr.opname
        ty = instr.type
        values = [self._value(fn, v, frame) for v in instr.operands]

        if op == "fneg":
            return normalize(ty, -values[0])
        if len(values) != 2:
            raise_error("IH0501", opname=op, function=fn.name)
        a, b = values

        if op in ("fadd", "fsub", "fmul", "fdiv", "frem"):
            if op == "fadd":
                r = a + b
            elif op == "fsub":
                r = a - b
            elif op == "fmul":
                r = a * b
            elif op == "fdiv":
                if b == 0.0:
                    r = math.nan if a == 0.0 or math.isnan(a) else math.copysign(math.inf, a) * math.copysign(1.0, b)
                else:
                    r = a / b
            else:
                r = math.fmod(a, b) if b != 0.0 else math.nan
            return normalize(ty, r)

        if not isinstance(ty, ir.IntType):
            raise_error("IH0501", opname=op, function=fn.name)
        w = ty.width

        if op == "add":
            r = a + b
        elif op == "sub":
            r = a - b
        elif op == "mul":
            r = a * b
        elif op == "and":
            r = a & b
        elif op == "or":
            r = a | b
        elif op == "xor":
            r = a ^ b
        elif op in ("udiv", "sdiv", "urem", "srem"):
            if b == 0:
                raise_error("IH0508", function=fn.name)
            if op == "udiv":
                r = a // b
            elif op == "urem":
                r = a % b
            elif op == "sdiv":
                r = _sdiv(to_signed(a, w), to_signed(b, w))
            else:
                r = _srem(to_signed(a, w), to_signed(b, w))
        elif op in ("shl", "lshr", "ashr"):
            amount = _shift_amount(b, w)
            if amount is None:
                r = 0
            elif op == "shl":
                r = a << amount
            elif op == "lshr":
                r = a >> amount
            else:
                r = to_signed(a, w) >> amount
        else:
            raise_error("IH0501", opname=op, function=fn.name)
        return r & mask(w)

    def _icmp(self, fn: ir.Function, instr: irinst.ICMPInstr, frame: Dict[int, Any]) -> int:
        lhs, rhs = instr.operands
        a = self._value(fn, lhs, frame)
        b = self._value(fn, rhs, frame)
        op = instr.op
        if not isinstance(a, int) or not isinstance(b, int):
            # pointer comparison: identity only
            if op == "eq":
                return int(a is b)
            if op == "ne":
                return int(a is not b)
            raise_error("IH0501", opname=f"icmp {op} on pointers", function=fn.name)
        if op.startswith("s"):
            w = lhs.type.width
            a, b = to_signed(a, w), to_signed(b, w)
        return int(_ICMP[op](a, b))

    def _fcmp(self, fn: ir.Function, instr: irinst.FCMPInstr, frame: Dict[int, Any]) -> int:
        lhs, rhs = instr.operands
        a = self._value(fn, lhs, frame)
        b = self._value(fn, rhs, frame)
        op = instr.op
        unordered = math.isnan(a) or math.isnan(b)
        if op == "ord":
            return int(not unordered)
        if op == "uno":
            return int(unordered)
        if op in ("true", "false"):
            return int(op == "true")
        prefix, cmp = op[0], op[1:]
        if unordered:
            return int(prefix == "u")
        return int(_FCMP[cmp](a, b))

    def _cast(self, fn: ir.Function, instr: irinst.CastInstr, frame: Dict[int, Any]) -> Any:
        op = instr.opname
        src = instr.operands[0]
        value = self._value(fn, src, frame)
        dst = instr.type

        if op in ("trunc", "zext"):
            return value & mask(dst.width)
        if op == "sext":
            return to_signed(value, src.type.width) & mask(dst.width)
        if op in ("fptrunc", "fpext"):
            return normalize(dst, value)
        if op in ("fptoui", "fptosi"):
            if math.isnan(value) or math.isinf(value):
                return 0
            return int(value) & mask(dst.width)
        if op == "uitofp":
            return normalize(dst, float(value))
        if op == "sitofp":
            return normalize(dst, float(to_signed(value, src.type.width)))
        if op == "bitcast":
            return self._bitcast(fn, src.type, dst, value)
        if op in ("ptrtoint", "inttoptr") and isinstance(value, int):
            return value & mask(dst.width) if isinstance(dst, ir.IntType) else value
        raise_error("IH0501", opname=op, function=fn.name)

    def _bitcast(self, fn: ir.Function, src: ir.Type, dst: ir.Type, value: Any) -> Any:
        if isinstance(src, ir.PointerType) and isinstance(dst, ir.PointerType):
            return value
        if isinstance(src, ir.IntType) and isinstance(dst, ir.IntType):
            return value
        if isinstance(src, ir.IntType) and src.width == 32 and isinstance(dst, ir.FloatType):
            return struct.unpack("<f", struct.pack("<I", value))[0]
        if isinstance(src, ir.IntType) and src.width == 64 and isinstance(dst, ir.DoubleType):
            return struct.unpack("<d", struct.pack("<Q", value))[0]
        if isinstance(src, ir.FloatType) and isinstance(dst, ir.IntType) and dst.width == 32:
            return struct.unpack("<I", struct.pack("<f", value))[0]
        if isinstance(src, ir.DoubleType) and isinstance(dst, ir.IntType) and dst.width == 64:
            return struct.unpack("<Q", struct.pack("<d", value))[0]
        raise_error("IH0501", opname=f"bitcast {src} to {dst}", function=fn.name)

    # Operands

    def _cell(self, fn: ir.Function, instr: irinst.Instruction, ptr: ir.Value,
              frame: Dict[int, Any]) -> Cell:
        cell = self._value(fn, ptr, frame)
        if not isinstance(cell, Cell):
            raise_error("IH0501", opname=f"{instr.opname} through a raw pointer", function=fn.name)
        return cell

    def _value(self, fn: ir.Function, value: ir.Value, frame: Dict[int, Any]) -> Any:
        key = id(value)
        if key in frame:
            return frame[key]
        if isinstance(value, ir.Constant):
            return self._constant(fn, value)
        if isinstance(value, ir.GlobalVariable):
            return self._global_cell(fn, value)
        if isinstance(value, ir.Function):
            return value
        raise_error("IH0501", opname=f"operand {value.__class__.__name__}", function=fn.name)

    def _constant(self, fn: ir.Function, const: ir.Constant) -> Any:
        ty = const.type
        raw = const.constant
        if raw is None or raw is ir.Undefined:
            return zero_value(ty)
        if isinstance(ty, ir.IntType) or _is_float_type(ty):
            return normalize(ty, raw)
        raise_error("IH0501", opname=f"constant of type {ty}", function=fn.name)

    def _global_cell(self, fn: ir.Function, gv: ir.GlobalVariable) -> Cell:
        cell = self._globals.get(id(gv))
        if cell is None:
            ty = gv.value_type
            init = gv.initializer
            value = self._constant(fn, init) if init is not None else zero_value(ty)
            cell = Cell(ty, value)
            self._globals[id(gv)] = cell
        return cell


class _Frame:
    """Activation record of one IR function call."""

    __slots__ = ("fn", "values", "block", "pc", "pending")

    def __init__(self, fn: ir.Function) -> None:
        self.fn = fn
        self.values: Dict[int, Any] = {}
        self.block: Optional[ir.Block] = None
        self.pc = 0
        self.pending: Optional[irinst.CallInstr] = None


class _Call:
    __slots__ = ("callee", "args")

    def __init__(self, callee: ir.Function, args: List[Any]) -> None:
        self.callee = callee
        self.args = args


class _Return:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value
