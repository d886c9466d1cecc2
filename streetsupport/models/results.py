"""Outcome types returned by the data-access layer.

Callers branch on ``Success``/``Failure`` instead of catching exceptions;
only the data-access functions themselves catch database errors.
"""
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")

@dataclass(frozen=True)
class FetchError:
    source: str
    message: str

@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

@dataclass(frozen=True)
class Failure:
    error: FetchError

FetchResult = Union[Success[T], Failure]
