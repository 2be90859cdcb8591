"""
Learning rate schedule tests.

Run: pytest test_schedulers.py
"""

import pytest

from optimkit import (
    ConstantScheduler,
    CosineScheduler,
    FactorScheduler,
    InverseSqrtScheduler,
    LinearScheduler,
    MultiFactorScheduler,
    PolynomialScheduler,
    SchedulerConfig,
    SchedulerType,
    WarmupType,
    create_scheduler,
)


# ═════════════════════════════════════════════════════════════════════════════════
# Test 1: Warmup
# ═════════════════════════════════════════════════════════════════════════════════

def test_linear_warmup_ramps_to_base_lr():
    sched = ConstantScheduler(1.0, warmup_steps=4, warmup_begin_lr=0.2)

    assert sched.current_rate(0) == pytest.approx(0.2)
    assert sched.current_rate(2) == pytest.approx(0.6)
    assert sched.current_rate(4) == pytest.approx(1.0)
    assert sched.current_rate(100) == pytest.approx(1.0)


def test_constant_warmup_holds_begin_lr():
    sched = ConstantScheduler(
        1.0, warmup_steps=3, warmup_type=WarmupType.CONSTANT, warmup_begin_lr=0.1,
    )
    assert [sched(n) for n in range(5)] == pytest.approx([0.1, 0.1, 0.1, 1.0, 1.0])


def test_warmup_type_none_disables_warmup():
    sched = ConstantScheduler(0.5, warmup_steps=10, warmup_type=WarmupType.NONE)
    assert sched.warmup_steps == 0
    assert sched.current_rate(0) == 0.5


def test_warmup_begin_lr_above_base_lr_is_rejected():
    with pytest.raises(ValueError):
        ConstantScheduler(0.1, warmup_steps=2, warmup_begin_lr=0.5)


# ═════════════════════════════════════════════════════════════════════════════════
# Test 2: Step Decay
# ═════════════════════════════════════════════════════════════════════════════════

def test_factor_scheduler_decays_after_each_step():
    sched = FactorScheduler(step=2, factor=0.5, base_lr=1.0, stop_factor_lr=0.0)
    rates = [sched.current_rate(n) for n in range(1, 7)]
    assert rates == pytest.approx([1.0, 1.0, 0.5, 0.5, 0.25, 0.25])


def test_factor_scheduler_respects_floor():
    sched = FactorScheduler(step=1, factor=0.1, base_lr=1.0, stop_factor_lr=1e-3)
    assert sched.current_rate(50) == pytest.approx(1e-3)


def test_multi_factor_scheduler_milestones():
    sched = MultiFactorScheduler([2, 4], factor=0.1, base_lr=1.0)
    assert sched.current_rate(2) == pytest.approx(1.0)
    assert sched.current_rate(3) == pytest.approx(0.1)
    assert sched.current_rate(4) == pytest.approx(0.1)
    assert sched.current_rate(5) == pytest.approx(0.01)


@pytest.mark.parametrize(
    "factory",
    [
        lambda: FactorScheduler(step=0),
        lambda: FactorScheduler(step=1, factor=1.5),
        lambda: MultiFactorScheduler([3, 2]),
        lambda: MultiFactorScheduler([0, 2]),
        lambda: MultiFactorScheduler([1, 2], factor=2.0),
        lambda: CosineScheduler(max_update=0),
        lambda: LinearScheduler(max_update=10, final_lr=1.0, base_lr=0.1),
    ],
)
def test_invalid_hyperparameters_are_rejected(factory):
    with pytest.raises(ValueError):
        factory()


# ═════════════════════════════════════════════════════════════════════════════════
# Test 3: Decay To Final LR
# ═════════════════════════════════════════════════════════════════════════════════

def test_cosine_scheduler_endpoints():
    sched = CosineScheduler(max_update=10, final_lr=0.0, base_lr=1.0)
    assert sched.current_rate(0) == pytest.approx(1.0)
    assert sched.current_rate(5) == pytest.approx(0.5)
    assert sched.current_rate(10) == pytest.approx(0.0)
    assert sched.current_rate(20) == pytest.approx(0.0)


def test_linear_scheduler_with_warmup():
    sched = LinearScheduler(max_update=6, final_lr=0.0, base_lr=1.0, warmup_steps=2)
    assert sched.current_rate(0) == pytest.approx(0.0)
    assert sched.current_rate(1) == pytest.approx(0.5)
    assert sched.current_rate(2) == pytest.approx(1.0)
    assert sched.current_rate(4) == pytest.approx(0.5)
    assert sched.current_rate(6) == pytest.approx(0.0)


def test_polynomial_scheduler():
    sched = PolynomialScheduler(max_update=10, final_lr=0.1, base_lr=1.1, power=2.0)
    # progress 0.5 -> multiplier 0.25
    assert sched.current_rate(5) == pytest.approx(0.1 + 1.0 * 0.25)
    assert sched.current_rate(11) == pytest.approx(0.1)


def test_inverse_sqrt_scheduler():
    sched = InverseSqrtScheduler(1.0, warmup_steps=4)
    assert sched.current_rate(4) == pytest.approx(1.0)
    assert sched.current_rate(16) == pytest.approx(0.5)
    assert sched.current_rate(2) == pytest.approx(0.5)


def test_schedule_is_monotone_after_warmup():
    sched = CosineScheduler(max_update=100, base_lr=1.0, warmup_steps=10)
    rates = [sched.current_rate(n) for n in range(10, 101)]
    assert all(a >= b for a, b in zip(rates, rates[1:]))


# ═════════════════════════════════════════════════════════════════════════════════
# Test 4: Factory & State
# ═════════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize(
    "scheduler_type, expected_cls",
    [
        (SchedulerType.CONSTANT, ConstantScheduler),
        (SchedulerType.FACTOR, FactorScheduler),
        (SchedulerType.MULTI_FACTOR, MultiFactorScheduler),
        (SchedulerType.LINEAR, LinearScheduler),
        (SchedulerType.COSINE, CosineScheduler),
        (SchedulerType.POLYNOMIAL, PolynomialScheduler),
        (SchedulerType.INVERSE_SQRT, InverseSqrtScheduler),
    ],
)
def test_create_scheduler(scheduler_type, expected_cls):
    config = SchedulerConfig(
        scheduler_type=scheduler_type, base_lr=0.5, max_update=10, steps=[3, 6],
    )
    sched = create_scheduler(config)
    assert type(sched) is expected_cls
    assert sched.base_lr == 0.5


def test_create_scheduler_defaults_to_constant():
    sched = create_scheduler()
    assert isinstance(sched, ConstantScheduler)
    assert sched.current_rate(1000) == pytest.approx(0.01)


def test_state_dict_round_trip():
    sched = FactorScheduler(step=5, factor=0.5, base_lr=0.3)
    other = FactorScheduler(step=5, factor=0.5, base_lr=1.0)
    other.load_state_dict(sched.state_dict())
    assert other.current_rate(12) == pytest.approx(sched.current_rate(12))
