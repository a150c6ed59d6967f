"""
Tradekit - Result Type.

============================================================
PURPOSE
============================================================
Tagged success/failure value returned by every public
operation instead of raising.

USAGE:
```python
result = await client.get_quote("BTC/USDT:USDT")
if result.is_ok():
    print(result.value.last)
else:
    print(result.error.reason)
```

============================================================
"""

from dataclasses import dataclass
from typing import Generic, Iterable, List, TypeVar, Union

from .errors import TradeError


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    """Failed result carrying exactly one TradeError."""

    error: TradeError

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        """Accessing the value of an Err is a usage bug."""
        raise ValueError(f"Called unwrap() on Err: {self.error}")


Result = Union[Ok[T], Err]


def combine(results: Iterable[Result]) -> Result:
    """
    Collapse a sequence of results into one.

    Returns Ok with all values, or the first Err encountered.
    """
    values: List = []
    for result in results:
        if result.is_err():
            return result
        values.append(result.value)
    return Ok(values)
