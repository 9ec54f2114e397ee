"""Falling bean for the bean counter (Galton box) machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union
import math
import random

SKILL_VARIANCE_FACTOR = 0.25


class BeanCounterError(Exception):
    """Base class for bean counter errors."""


class InvalidConfiguration(BeanCounterError, ValueError):
    """Raised when a machine or bean is built with impossible dimensions."""


@dataclass(frozen=True)
class Luck:
    pass


@dataclass(frozen=True)
class Skill:
    threshold: int


BeanMode = Union[Luck, Skill]


def draw_skill(slot_count: int, rng: random.Random) -> Skill:
    """Draw a skill threshold around the middle slot, clamped to the board."""
    mean = (slot_count - 1) * 0.5
    stdev = math.sqrt(slot_count * SKILL_VARIANCE_FACTOR)
    level = int(round(rng.gauss(mean, stdev)))
    return Skill(max(0, min(slot_count - 1, level)))


class Bean:
    def __init__(
        self,
        slot_count: int,
        luck: bool,
        rng: Optional[random.Random] = None,
        mode: Optional[BeanMode] = None,
    ) -> None:
        if slot_count <= 0:
            raise InvalidConfiguration("slot count must be positive")
        if isinstance(mode, Skill) and not 0 <= mode.threshold < slot_count:
            raise InvalidConfiguration("skill threshold must be 0..slot_count-1")
        self._rng = rng if rng is not None else random.Random()
        self._width = slot_count
        if mode is None:
            mode = Luck() if luck else draw_skill(slot_count, self._rng)
        self._mode: BeanMode = mode
        self._x_pos = 0

    @classmethod
    def with_mode(cls, slot_count: int, mode: BeanMode, rng: Optional[random.Random] = None) -> "Bean":
        return cls(slot_count, isinstance(mode, Luck), rng, mode=mode)

    @property
    def mode(self) -> BeanMode:
        return self._mode

    @property
    def width(self) -> int:
        return self._width

    def reset(self) -> None:
        self._x_pos = 0

    def current_x(self) -> int:
        return self._x_pos

    def advance_choice(self) -> None:
        if self._choose_right() and self._x_pos < self._width - 1:
            self._x_pos += 1

    def _choose_right(self) -> bool:
        mode = self._mode
        if isinstance(mode, Skill):
            return self._x_pos < mode.threshold
        return self._rng.getrandbits(1) == 1

    def __repr__(self) -> str:
        return f"Bean(x={self._x_pos}, width={self._width}, mode={self._mode!r})"


def make_beans(slot_count: int, bean_count: int, luck: bool, seed: Optional[int] = None) -> List[Bean]:
    """Build ``bean_count`` beans, each with its own random source.

    With ``seed`` set, every bean's source is derived from it, so two calls
    with the same arguments produce beans that fall identically.
    """
    if slot_count <= 0:
        raise InvalidConfiguration("slot count must be positive")
    if bean_count < 0:
        raise InvalidConfiguration("bean count must be non-negative")
    master = random.Random(seed)
    return [Bean(slot_count, luck, random.Random(master.getrandbits(64))) for _ in range(bean_count)]
