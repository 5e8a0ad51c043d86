from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union


SlopeFn = Callable[[float, float], float]


class SlopeSource(Protocol):
    """Terrain object able to answer slope queries at planar positions."""

    def sample(self, x: float, y: float) -> float:
        ...


@dataclass(frozen=True)
class CallbackSlopeSampler:
    """Slope sampler backed by a plain `(x, y) -> slope` callable."""

    fn: SlopeFn

    def __call__(self, x: float, y: float) -> float:
        return self.fn(x, y)


@dataclass(frozen=True)
class SampledSlopeSampler:
    """Slope sampler backed by an object exposing `sample(x, y)`."""

    source: SlopeSource

    def __call__(self, x: float, y: float) -> float:
        return self.source.sample(x, y)


SlopeSampler = Union[CallbackSlopeSampler, SampledSlopeSampler]


def normalize_slope_sampler(slope_map: Any) -> Optional[SlopeSampler]:
    """Wrap a callable or `.sample` object; anything else gives None."""
    if slope_map is None:
        return None
    if isinstance(slope_map, (CallbackSlopeSampler, SampledSlopeSampler)):
        return slope_map
    if callable(slope_map):
        return CallbackSlopeSampler(slope_map)
    if callable(getattr(slope_map, "sample", None)):
        return SampledSlopeSampler(slope_map)
    return None
