"""
Updater tests: state table ownership, serialization and a small training loop.

Run: pytest test_updater.py
"""

import io

import pytest
import torch
import torch.nn as nn

from optimkit import (
    SGD,
    CheckpointLoadError,
    ConstantScheduler,
    Updater,
    create_sgd,
    get_updater,
)


# ═════════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═════════════════════════════════════════════════════════════════════════════════

class SimpleModel(nn.Module):
    """Minimal model for testing."""
    def __init__(self, in_dim=8, hidden=16, out_dim=1):
        super().__init__()
        self.fc1 = nn.Linear(in_dim, hidden)
        self.fc2 = nn.Linear(hidden, out_dim)

    def forward(self, x):
        return self.fc2(torch.relu(self.fc1(x)))


class CountingSGD(SGD):
    """SGD that counts create_state calls per index."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.created = {}

    def create_state(self, index, weight):
        self.created[index] = self.created.get(index, 0) + 1
        return super().create_state(index, weight)


def backward_step(model, x, y):
    model.zero_grad(set_to_none=True)
    loss = nn.functional.mse_loss(model(x), y)
    loss.backward()
    return loss.item()


# ═════════════════════════════════════════════════════════════════════════════════
# Test 1: State Ownership
# ═════════════════════════════════════════════════════════════════════════════════

def test_state_created_once_per_index():
    optimizer = CountingSGD(momentum=0.9, backend="torch")
    updater = Updater(optimizer)
    weights = [torch.zeros(3), torch.zeros(2, 2)]

    for _ in range(4):
        for i, w in enumerate(weights):
            updater(i, torch.ones_like(w), w)

    assert optimizer.created == {0: 1, 1: 1}
    assert optimizer.get_update_count(0) == 4
    assert optimizer.num_update == 4


def test_same_state_object_is_threaded_back():
    updater = get_updater(create_sgd(lr=0.1, momentum=0.9, backend="torch"))
    w = torch.zeros(3)

    updater(0, torch.ones(3), w)
    first = updater.states[0]
    updater(0, torch.ones(3), w)

    assert updater.states[0] is first
    assert torch.count_nonzero(first) == 3


def test_step_skips_parameters_without_grad():
    updater = get_updater(create_sgd(lr=0.1, backend="torch"))
    a = torch.zeros(2, requires_grad=True)
    b = torch.zeros(2, requires_grad=True)
    a.grad = torch.ones(2)

    assert updater.step([a, b]) == 1
    assert torch.equal(b.detach(), torch.zeros(2))
    assert torch.allclose(a.detach(), torch.full((2,), -0.1))
    assert list(updater.states) == [0]


def test_training_loop_reduces_loss():
    torch.manual_seed(0)
    model = SimpleModel()
    x = torch.randn(64, 8)
    y = x.sum(dim=1, keepdim=True)
    updater = get_updater(
        SGD(lr_scheduler=ConstantScheduler(0.01), momentum=0.9, backend="torch")
    )
    params = list(model.parameters())

    initial = backward_step(model, x, y)
    for _ in range(200):
        backward_step(model, x, y)
        updater.step(params)
    final = backward_step(model, x, y)

    assert final < initial * 0.5


# ═════════════════════════════════════════════════════════════════════════════════
# Test 2: Serialization
# ═════════════════════════════════════════════════════════════════════════════════

def test_get_set_states_resumes_identically():
    torch.manual_seed(1)
    grads = [torch.randn(4) for _ in range(5)]

    def make():
        return get_updater(create_sgd(lr=0.1, momentum=0.9, weight_decay=0.01, backend="torch"))

    reference = make()
    w_ref = torch.ones(4)
    for g in grads:
        reference(0, g, w_ref)

    first = make()
    w = torch.ones(4)
    for g in grads[:3]:
        first(0, g, w)
    payload = first.get_states()

    resumed = make()
    resumed.set_states(payload)
    for g in grads[3:]:
        resumed(0, g, w)

    assert torch.equal(w, w_ref)
    assert resumed.optimizer.num_update == reference.optimizer.num_update


def test_set_states_rejects_garbage():
    updater = get_updater(create_sgd(backend="torch"))
    with pytest.raises(CheckpointLoadError):
        updater.set_states(b"not a checkpoint")


def test_set_states_rejects_incomplete_payload():
    buffer = io.BytesIO()
    torch.save({"states": {}}, buffer)
    updater = get_updater(create_sgd(backend="torch"))

    with pytest.raises(CheckpointLoadError) as exc_info:
        updater.set_states(buffer.getvalue())

    assert exc_info.value.missing_keys == ("optimizer",)


def test_set_states_rejects_other_optimizer_type():
    buffer = io.BytesIO()
    torch.save({"states": {}, "optimizer": {"optimizer_type": "adam"}}, buffer)
    updater = get_updater(create_sgd(backend="torch"))

    with pytest.raises(CheckpointLoadError):
        updater.set_states(buffer.getvalue())


def _momentum_payload():
    updater = get_updater(create_sgd(lr=0.1, momentum=0.9, backend="torch"))
    updater(0, torch.ones(3), torch.zeros(3))
    return updater.get_states()


def test_set_states_rejects_momentum_buffer_without_momentum():
    updater = get_updater(create_sgd(lr=0.1, momentum=0.0, backend="torch"))

    with pytest.raises(CheckpointLoadError):
        updater.set_states(_momentum_payload())

    assert updater.states == {}
    assert updater.optimizer.num_update == 0


def test_set_states_rejects_missing_buffer_with_momentum():
    plain = get_updater(create_sgd(lr=0.1, backend="torch"))
    plain(0, torch.ones(3), torch.zeros(3))
    updater = get_updater(create_sgd(lr=0.1, momentum=0.9, backend="torch"))

    with pytest.raises(CheckpointLoadError):
        updater.set_states(plain.get_states())


def test_failed_restore_leaves_counters_untouched():
    updater = get_updater(create_sgd(lr=0.1, backend="torch"))
    updater(0, torch.ones(2), torch.zeros(2))

    buffer = io.BytesIO()
    torch.save({"states": [1, 2], "optimizer": {"num_update": 50}}, buffer)
    with pytest.raises(CheckpointLoadError):
        updater.set_states(buffer.getvalue())

    buffer = io.BytesIO()
    torch.save({"states": {}, "optimizer": "not a mapping"}, buffer)
    with pytest.raises(CheckpointLoadError):
        updater.set_states(buffer.getvalue())

    assert updater.optimizer.num_update == 1
    assert list(updater.states) == [0]


def test_restored_buffer_follows_weight_device():
    updater = get_updater(create_sgd(lr=0.1, momentum=0.9, backend="torch"))
    updater.set_states(_momentum_payload())
    weight = torch.zeros(3, dtype=torch.float32)

    updater(0, torch.ones(3), weight)

    assert updater.states[0].device == weight.device
    assert torch.count_nonzero(weight) == 3


@pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA required")
def test_restored_buffer_moves_to_cuda_weight():
    updater = get_updater(create_sgd(lr=0.1, momentum=0.9, backend="torch"))
    updater.set_states(_momentum_payload())
    weight = torch.zeros(3, device="cuda")

    updater(0, torch.ones(3, device="cuda"), weight)

    assert updater.states[0].is_cuda


# ═════════════════════════════════════════════════════════════════════════════════
# Test 3: State Files
# ═════════════════════════════════════════════════════════════════════════════════

def test_save_and_load_states(tmp_path):
    path = tmp_path / "ckpt" / "optimizer.pt"
    first = get_updater(create_sgd(lr=0.1, momentum=0.9, backend="torch"))
    first(0, torch.ones(3), torch.zeros(3))
    first.save_states(path)

    resumed = get_updater(create_sgd(lr=0.1, momentum=0.9, backend="torch"))
    resumed.load_states(path)

    assert torch.equal(resumed.states[0], first.states[0])
    assert resumed.optimizer.get_update_count(0) == 1


def test_load_states_missing_file_reports_path(tmp_path):
    updater = get_updater(create_sgd(backend="torch"))
    path = tmp_path / "absent.pt"

    with pytest.raises(CheckpointLoadError) as exc_info:
        updater.load_states(path)

    assert exc_info.value.checkpoint_path == str(path)


def test_load_states_mismatch_reports_path(tmp_path):
    path = tmp_path / "optimizer.pt"
    path.write_bytes(_momentum_payload())
    updater = get_updater(create_sgd(backend="torch"))

    with pytest.raises(CheckpointLoadError) as exc_info:
        updater.load_states(path)

    assert exc_info.value.checkpoint_path == str(path)
