"""Configuration: validated pydantic models for every tunable piece.

Model shapes, rotary settings, caches, tokenizers and servers are all
described by small pydantic models. Configs can be written by hand in
Python or loaded from JSON/YAML, and invalid values fail early with a
readable message instead of deep inside a forward pass.
"""
from __future__ import annotations

import enum
import importlib
from typing import Annotated, Protocol, TypeVar, cast

from pydantic import AfterValidator, BaseModel
from torch import nn


T = TypeVar("T")


class ValidationType(enum.Enum):
    """Kinds of value checks the config helpers understand."""

    SHOULD_BE_TRUE = "should_be_true"
    SHOULD_BE_EQUAL_TO = "should_be_equal_to"
    SHOULD_BE_MULTIPLE_OF = "should_be_multiple_of"
    SHOULD_BE_POSITIVE = "should_be_positive"
    SHOULD_BE_NON_NEGATIVE = "should_be_non_negative"


class Config(BaseModel):
    """Base class for configuration objects.

    Configs whose `type` field is a module-aware enum can construct their
    nn.Module with `build()`.
    """

    def build(self) -> nn.Module:
        """Construct the nn.Module this config describes.

        The enum value names the class and the lowercased enum name the
        module inside `type.module_name()`.
        """

        class _BuildType(Protocol):
            value: str
            name: str

            def module_name(self) -> str:
                ...

        t = cast(_BuildType, getattr(self, "type"))
        mod = importlib.import_module(f"{t.module_name()}.{t.name.lower()}")
        cls = getattr(mod, t.value)
        return cls(self)

    @staticmethod
    def check(left: T, validation_type: ValidationType, right: T | None = None) -> T:
        """Validate a value against a constraint, raising ValueError on failure."""
        match validation_type:
            case ValidationType.SHOULD_BE_TRUE:
                if not left:
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: "
                        f"value={left!r} is not truthy"
                    )
                return left
            case ValidationType.SHOULD_BE_EQUAL_TO:
                if left != right:
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: "
                        f"{left!r} != {right!r}"
                    )
                return left
            case ValidationType.SHOULD_BE_MULTIPLE_OF:
                if right is None or left % right != 0:  # type: ignore[operator]
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: "
                        f"{left!r} is not a multiple of {right!r}"
                    )
                return left
            case ValidationType.SHOULD_BE_POSITIVE:
                if left <= 0:  # type: ignore[operator]
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: {left!r} <= 0"
                    )
                return left
            case ValidationType.SHOULD_BE_NON_NEGATIVE:
                if left < 0:  # type: ignore[operator]
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: {left!r} < 0"
                    )
                return left
            case _:
                raise ValueError(
                    f"Validation failed: unknown validation type {validation_type}"
                )

    @staticmethod
    def check_range(
        value: float,
        *,
        ge: float | None = None,
        gt: float | None = None,
        le: float | None = None,
        lt: float | None = None,
    ) -> float:
        """Validate a number is within a range."""
        v = float(value)
        if ge is not None and v < ge:
            raise ValueError(f"Validation failed: {v} < {ge} (expected >= {ge})")
        if gt is not None and v <= gt:
            raise ValueError(f"Validation failed: {v} <= {gt} (expected > {gt})")
        if le is not None and v > le:
            raise ValueError(f"Validation failed: {v} > {le} (expected <= {le})")
        if lt is not None and v >= lt:
            raise ValueError(f"Validation failed: {v} >= {lt} (expected < {lt})")
        return v


PositiveInt = Annotated[
    int,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_POSITIVE)),
]
NonNegativeInt = Annotated[
    int,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_NON_NEGATIVE)),
]
PositiveFloat = Annotated[
    float,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_POSITIVE)),
]
NonNegativeFloat = Annotated[
    float,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_NON_NEGATIVE)),
]
Probability = Annotated[
    float,
    AfterValidator(lambda v: Config.check_range(v, gt=0.0, le=1.0)),
]
