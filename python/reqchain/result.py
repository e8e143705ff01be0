"""Result of a safe client call: either `Ok(context)` or `Err(error)`."""

from dataclasses import dataclass
from typing import Generic, Literal, NoReturn, TypeVar

from reqchain.exceptions import ReqchainError

T = TypeVar("T")
E = TypeVar("E", bound=ReqchainError)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        msg = f"called unwrap_err on {self!r}"
        raise ValueError(msg)

    def unwrap_or(self, default: object) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> NoReturn:
        """Raise the held error."""
        raise self.error

    def unwrap_err(self) -> E:
        return self.error

    def unwrap_or(self, default: T) -> T:
        return default


Result = Ok[T] | Err[E]
