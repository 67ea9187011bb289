import math
from typing import NamedTuple, Optional, Union

NULL = "null"
NUMERIC = "numeric"
TEXT = "text"


class Cell(NamedTuple):
    kind: str
    value: Union[float, str, None] = None


NULL_CELL = Cell(NULL)


def canonical_number(x: float) -> str:
    """Shortest round-trip form: integral values without a trailing '.0',
    exponents without zero padding ('1e-7', '1.5e+22')."""
    if x.is_integer() and abs(x) < 1e21:
        return str(int(x))
    r = repr(x)
    mantissa, e, exp = r.partition("e")
    if not e:
        return r
    return f"{mantissa}e{exp[0]}{exp[1:].lstrip('0')}"


def classify(value: Optional[str]) -> Cell:
    """Classify one raw field as null, numeric or text.

    A value is numeric only when its canonical number form equals the trimmed
    input, so "2020-01-01", "123abc", "1.50" and "007" stay text.
    """
    if value is None:
        return NULL_CELL
    s = value.strip()
    if not s:
        return NULL_CELL
    try:
        x = float(s)
    except ValueError:
        return Cell(TEXT, s)
    if not math.isfinite(x) or canonical_number(x) != s:
        return Cell(TEXT, s)
    return Cell(NUMERIC, x)
