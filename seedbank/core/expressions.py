"""
Restricted expression evaluation for seed documents.

Two evaluators, neither of which can execute arbitrary code:

* ``{{ expr }}`` bulk-create template arithmetic: integers, ``index``,
  ``+ - * / %`` and parentheses. ``/`` is floor division.
* ``[[ expr ]]`` embedded expressions: a Python-syntax subset walked from
  the AST against an allow-listed namespace (date helpers, arithmetic,
  comparisons, literals, a handful of string/date methods).
"""
from __future__ import annotations

import ast
import operator
import random
import re
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from . import dates


class TemplateExpressionError(ValueError):
    pass


class ExpressionError(ValueError):
    pass


# ------------------------------------------------------------
# {{ expr }} template arithmetic
# ------------------------------------------------------------
TEMPLATE_PATTERN = re.compile(r"\{\{(.*?)\}\}")

_TOKEN = re.compile(r"\s*(?:(\d+)|(index)\b|([-+*/%()]))")


def _tokenize(expr: str) -> List[Tuple[str, Any]]:
    tokens: List[Tuple[str, Any]] = []
    pos = 0
    text = expr.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None:
            raise TemplateExpressionError(f"unexpected input at position {pos}: {text[pos:]!r}")
        number, name, op = m.groups()
        if number is not None:
            tokens.append(("num", int(number)))
        elif name is not None:
            tokens.append(("index", None))
        else:
            tokens.append(("op", op))
        pos = m.end()
    return tokens


class _TemplateParser:
    """Recursive descent: expr := term (+|- term)*, term := unary (*|/|% unary)*."""

    def __init__(self, tokens: List[Tuple[str, Any]], index: int):
        self.tokens = tokens
        self.pos = 0
        self.index = index

    def _peek(self) -> Optional[Tuple[str, Any]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> Tuple[str, Any]:
        tok = self._peek()
        if tok is None:
            raise TemplateExpressionError("unexpected end of expression")
        self.pos += 1
        return tok

    def parse(self) -> int:
        if not self.tokens:
            raise TemplateExpressionError("empty expression")
        value = self._expr()
        if self._peek() is not None:
            raise TemplateExpressionError(f"unexpected token {self._peek()[1]!r}")
        return value

    def _expr(self) -> int:
        value = self._term()
        while self._peek() in (("op", "+"), ("op", "-")):
            op = self._next()[1]
            rhs = self._term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def _term(self) -> int:
        value = self._unary()
        while self._peek() in (("op", "*"), ("op", "/"), ("op", "%")):
            op = self._next()[1]
            rhs = self._unary()
            if op == "*":
                value = value * rhs
            elif rhs == 0:
                raise TemplateExpressionError("division by zero")
            elif op == "/":
                value = value // rhs
            else:
                value = value % rhs
        return value

    def _unary(self) -> int:
        if self._peek() == ("op", "-"):
            self._next()
            return -self._unary()
        if self._peek() == ("op", "+"):
            self._next()
            return self._unary()
        return self._atom()

    def _atom(self) -> int:
        kind, value = self._next()
        if kind == "num":
            return value
        if kind == "index":
            return self.index
        if value == "(":
            inner = self._expr()
            if self._next() != ("op", ")"):
                raise TemplateExpressionError("missing closing parenthesis")
            return inner
        raise TemplateExpressionError(f"unexpected token {value!r}")


def evaluate_template_expression(expr: str, index: int) -> int:
    try:
        return _TemplateParser(_tokenize(expr), index).parse()
    except RecursionError:
        raise TemplateExpressionError("expression is nested too deeply") from None


def render_template_string(text: str, index: int) -> str:
    """Replace every ``{{ expr }}`` in ``text`` with its stringified value."""
    return TEMPLATE_PATTERN.sub(lambda m: str(evaluate_template_expression(m.group(1), index)), text)


def render_template(value: Any, index: int) -> Any:
    """Apply ``render_template_string`` to every string inside ``value`` (keys untouched)."""
    if isinstance(value, str):
        return render_template_string(value, index) if "{{" in value else value
    if isinstance(value, Mapping):
        return {k: render_template(v, index) for k, v in value.items()}
    if isinstance(value, list):
        return [render_template(v, index) for v in value]
    return value


# ------------------------------------------------------------
# [[ expr ]] sandboxed evaluator
# ------------------------------------------------------------
_BIN_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_CMP_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

SAFE_METHODS = frozenset(
    {
        "isoformat",
        "strftime",
        "weekday",
        "isoweekday",
        "date",
        "upper",
        "lower",
        "title",
        "capitalize",
        "strip",
        "lstrip",
        "rstrip",
        "replace",
        "split",
        "join",
        "startswith",
        "endswith",
        "get",
        "keys",
        "values",
        "items",
    }
)

_BLOCKED_ATTRIBUTES = frozenset({"mro", "gi_frame", "gi_code", "cr_frame", "ag_frame", "tb_frame", "f_globals", "f_locals", "f_back", "f_builtins"})

_MAX_EXPONENT = 64
_MAX_SEQUENCE = 10_000
_MAX_INT_BITS = 4096


def _bounded(value: Any) -> Any:
    if isinstance(value, (str, bytes, list, tuple, dict)) and len(value) > _MAX_SEQUENCE:
        raise ExpressionError(f"result too large ({len(value)} items, limit {_MAX_SEQUENCE})")
    if isinstance(value, int) and value.bit_length() > _MAX_INT_BITS:
        raise ExpressionError("integer result too large")
    return value


def _check_method_size(fn: Any, args: List[Any]) -> None:
    # str methods whose output can outgrow their inputs
    target = getattr(fn, "__self__", None)
    if not isinstance(target, str):
        return
    name = getattr(fn, "__name__", "")
    if name == "replace" and len(args) >= 2 and isinstance(args[0], str) and isinstance(args[1], str):
        hits = target.count(args[0]) if args[0] else len(target) + 1
        size = len(target) + hits * len(args[1])
    elif name == "join" and args:
        parts = list(args[0])
        size = sum(len(p) for p in parts if isinstance(p, str)) + len(target) * max(len(parts) - 1, 0)
    else:
        return
    if size > _MAX_SEQUENCE:
        raise ExpressionError(f"result too large ({size} items, limit {_MAX_SEQUENCE})")


def _random_hex(length: int = 8) -> str:
    return uuid.uuid4().hex[: max(1, min(int(length), 32))]


def default_functions(clock: Optional[Callable[[], date]] = None) -> Dict[str, Any]:
    today = clock or dates.current_date
    return {
        "today": today,
        "now": datetime.now,
        "tomorrow": lambda: dates.add_days(today(), 1),
        "yesterday": lambda: dates.add_days(today(), -1),
        "date": date,
        "datetime": datetime,
        "timedelta": timedelta,
        "add_days": dates.add_days,
        "add_weeks": dates.add_weeks,
        "add_months": dates.add_months,
        "days_from_now": lambda n: dates.add_days(today(), n),
        "days_ago": lambda n: dates.add_days(today(), -n),
        "next_occurring": lambda weekday: dates.next_occurring(weekday, today()),
        "beginning_of_week": lambda start_day="monday": dates.beginning_of_week(start_day, today()),
        "beginning_of_month": dates.beginning_of_month,
        "uuid": lambda: str(uuid.uuid4()),
        "random_hex": _random_hex,
        "random_int": random.randint,
        "choice": random.choice,
        "str": str,
        "int": int,
        "float": float,
        "bool": bool,
        "round": round,
        "abs": abs,
        "min": min,
        "max": max,
        "len": len,
        "sum": sum,
        "True": True,
        "False": False,
        "None": None,
    }


class SafeEvaluator:
    def __init__(self, names: Mapping[str, Any]):
        self.names = dict(names)

    def evaluate(self, expr: str) -> Any:
        try:
            tree = ast.parse(expr.strip(), mode="eval")
        except SyntaxError as e:
            raise ExpressionError(f"invalid syntax: {e.msg}") from None
        except (RecursionError, MemoryError):
            raise ExpressionError("expression is nested too deeply") from None
        try:
            return self._eval(tree.body)
        except RecursionError:
            raise ExpressionError("expression is nested too deeply") from None

    def _eval(self, node: ast.AST) -> Any:
        method = getattr(self, f"_eval_{type(node).__name__}", None)
        if method is None:
            raise ExpressionError(f"'{type(node).__name__}' is not allowed in expressions")
        return _bounded(method(node))

    def _eval_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name) -> Any:
        if node.id not in self.names:
            raise ExpressionError(f"name '{node.id}' is not available")
        return self.names[node.id]

    def _eval_BinOp(self, node: ast.BinOp) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"operator '{type(node.op).__name__}' is not allowed")
        left = self._eval(node.left)
        right = self._eval(node.right)
        if isinstance(node.op, ast.Pow) and isinstance(right, (int, float)) and abs(right) > _MAX_EXPONENT:
            raise ExpressionError("exponent too large")
        if isinstance(node.op, ast.Pow) and isinstance(left, int) and isinstance(right, int) and left.bit_length() * right > _MAX_INT_BITS:
            raise ExpressionError("integer result too large")
        if isinstance(node.op, ast.Mod) and isinstance(left, (str, bytes)):
            raise ExpressionError("string formatting with % is not allowed")
        if isinstance(node.op, ast.Mult):
            for seq, n in ((left, right), (right, left)):
                if isinstance(seq, (str, list, tuple)) and isinstance(n, int) and len(seq) * n > _MAX_SEQUENCE:
                    raise ExpressionError("sequence repetition too large")
        return op(left, right)

    def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"operator '{type(node.op).__name__}' is not allowed")
        return op(self._eval(node.operand))

    def _eval_BoolOp(self, node: ast.BoolOp) -> Any:
        result: Any = None
        for value_node in node.values:
            result = self._eval(value_node)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def _eval_Compare(self, node: ast.Compare) -> bool:
        left = self._eval(node.left)
        for op_node, right_node in zip(node.ops, node.comparators):
            right = self._eval(right_node)
            if not _CMP_OPS[type(op_node)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp) -> Any:
        return self._eval(node.body) if self._eval(node.test) else self._eval(node.orelse)

    def _eval_List(self, node: ast.List) -> List[Any]:
        return [self._eval(e) for e in node.elts]

    def _eval_Tuple(self, node: ast.Tuple) -> Tuple[Any, ...]:
        return tuple(self._eval(e) for e in node.elts)

    def _eval_Dict(self, node: ast.Dict) -> Dict[Any, Any]:
        if any(k is None for k in node.keys):
            raise ExpressionError("dict unpacking is not allowed")
        return {self._eval(k): self._eval(v) for k, v in zip(node.keys, node.values)}

    def _eval_Subscript(self, node: ast.Subscript) -> Any:
        target = self._eval(node.value)
        return target[self._eval(node.slice)]

    def _eval_Slice(self, node: ast.Slice) -> slice:
        return slice(
            self._eval(node.lower) if node.lower else None,
            self._eval(node.upper) if node.upper else None,
            self._eval(node.step) if node.step else None,
        )

    def _eval_Attribute(self, node: ast.Attribute) -> Any:
        if node.attr.startswith("_") or node.attr in _BLOCKED_ATTRIBUTES:
            raise ExpressionError(f"attribute '{node.attr}' is not allowed")
        target = self._eval(node.value)
        value = getattr(target, node.attr)
        if callable(value) and node.attr not in SAFE_METHODS:
            raise ExpressionError(f"method '{node.attr}' is not allowed")
        return value

    def _eval_Call(self, node: ast.Call) -> Any:
        if isinstance(node.func, ast.Name):
            fn = self._eval_Name(node.func)
        elif isinstance(node.func, ast.Attribute):
            fn = self._eval_Attribute(node.func)
        else:
            raise ExpressionError("only named functions may be called")
        if not callable(fn):
            raise ExpressionError("object is not callable")
        args = []
        for a in node.args:
            if isinstance(a, ast.Starred):
                raise ExpressionError("argument unpacking is not allowed")
            args.append(self._eval(a))
        kwargs = {}
        for kw in node.keywords:
            if kw.arg is None:
                raise ExpressionError("argument unpacking is not allowed")
            kwargs[kw.arg] = self._eval(kw.value)
        _check_method_size(fn, args)
        return fn(*args, **kwargs)
