from __future__ import annotations

import math

from city_collision.slope import (
    CallbackSlopeSampler,
    SampledSlopeSampler,
    normalize_slope_sampler,
)


class Terrain:
    def sample(self, x: float, y: float) -> float:
        return x * 0.01 + y * 0.02


def test_callable_becomes_callback_sampler() -> None:
    sampler = normalize_slope_sampler(lambda x, y: x + y)
    assert isinstance(sampler, CallbackSlopeSampler)
    assert sampler(1.0, 2.0) == 3.0


def test_sample_object_becomes_sampled_sampler() -> None:
    sampler = normalize_slope_sampler(Terrain())
    assert isinstance(sampler, SampledSlopeSampler)
    assert math.isclose(sampler(10.0, 5.0), 0.2)


def test_existing_variants_pass_through() -> None:
    sampler = CallbackSlopeSampler(lambda x, y: 0.0)
    assert normalize_slope_sampler(sampler) is sampler


def test_unusable_values_give_none() -> None:
    assert normalize_slope_sampler(None) is None
    assert normalize_slope_sampler(0.3) is None
    assert normalize_slope_sampler("steep") is None
