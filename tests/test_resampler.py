from __future__ import annotations

import gc
import logging
import math
import random
import weakref

import pytest

from cellresampler import (
    Distance,
    EuclWithScaledPt,
    Resampler,
    ResamplerConfig,
    ResamplerState,
    SeedNotFound,
    StructuralMismatch,
)
from cellresampler.config import Search
from cellresampler.search import VantagePointTree, registry
from conftest import JET, dijet_event, line_event


@pytest.fixture(params=["tree", "naive"])
def search(request) -> str:
    return request.param


def _resampler(search: str = "tree", **kwargs) -> Resampler:
    return Resampler(ResamplerConfig(neighbour_search=search, **kwargs))


def test_dijet_scenario(search, dijet_events):
    res = _resampler(search)
    res.reserve(2)
    for ev in dijet_events:
        res.push_event(ev)
    report = res.resample(0, math.inf)
    assert report.n_cells == 1
    assert res.next_weights() == [0.0]
    assert res.next_weights() == [0.0]
    assert res.next_weights() is None
    res.free()


def test_unlimited_cell_gives_mean_everywhere(search, make_events):
    events = make_events(60, seed=4, n_weights=3)
    means = [math.fsum(ev.weights[k] for ev in events) / len(events) for k in range(3)]
    res = _resampler(search)
    for ev in events:
        res.push_event(ev)
    report = res.resample(None, math.inf)
    assert report.n_cells == 1
    assert report.cell_sizes == [60]
    assert report.is_conserved()
    drained = list(res.drain())
    assert len(drained) == 60
    for k in range(3):
        assert math.fsum(w[k] for w in drained) == math.fsum(ev.weights[k] for ev in events)
    for weights in drained:
        assert weights == pytest.approx(means)


def test_conservation_per_component_with_bounded_cells(search, make_events):
    events = make_events(200, seed=9, n_weights=2, negative_fraction=0.4)
    before = [math.fsum(ev.weights[k] for ev in events) for k in range(2)]
    res = _resampler(search, pt_weight=0.5)
    for ev in events:
        res.push_event(ev)
    report = res.resample(5, 150.0)
    assert report.n_cells > 1
    assert report.max_radius <= 150.0
    assert report.is_conserved()
    assert report.n_unbalanced_cells == 0
    assert report.totals_close()

    # every cell keeps its own sums exactly; drained cells come out last-first
    drained = list(res.drain())
    start = 0
    for cell in reversed(report.cell_members):
        block = drained[start:start + len(cell)]
        for k in range(2):
            assert math.fsum(w[k] for w in block) == math.fsum(events[i].weights[k] for i in cell)
        start += len(cell)
    after = [math.fsum(w[k] for w in drained) for k in range(2)]
    assert after == pytest.approx(before, abs=1e-9)


def test_tree_and_naive_form_the_same_cells(make_events):
    events = make_events(150, seed=21)
    results = {}
    for search in ("tree", "naive"):
        res = _resampler(search)
        for ev in events:
            res.push_event(ev)
        report = res.resample(0, 120.0)
        results[search] = (report.cell_sizes, list(res.drain()))
    assert results["tree"] == results["naive"]


def test_drain_order_is_reverse_of_finalization(search):
    res = _resampler(search)
    for pz, w in [(0.0, -1.0), (1.0, 3.0), (100.0, 5.0), (101.0, -1.0)]:
        res.push_event(line_event(pz, w))
    report = res.resample(0, 10.0)
    assert report.cell_sizes == [2, 2]

    assert res.next_weights() == [2.0]
    with pytest.raises(KeyError):
        res.get_event(3)
    assert res.get_event(2).weights == [2.0]
    assert res.next_weights() == [2.0]
    assert res.next_weights() == [1.0]
    assert res.next_weights() == [1.0]
    assert res.next_weights() is None
    assert res.state is ResamplerState.EMPTY


def test_cell_closing_event_seeds_next_cell(search):
    res = _resampler(search)
    for pz in (0.0, 50.0, 51.0, 200.0):
        res.push_event(line_event(pz))
    report = res.resample(0, 10.0)
    # 0 alone; 50 seeds a cell that takes 51; 200 alone
    assert report.cell_sizes == [1, 2, 1]


def test_zero_diameter_keeps_distinct_events_apart(search, make_events):
    events = make_events(20, seed=2)
    originals = [list(ev.weights) for ev in events]
    res = _resampler(search)
    for ev in events:
        res.push_event(ev)
    report = res.resample(0, 0.0)
    assert report.n_cells == 20
    drained = list(res.drain())
    assert sorted(map(tuple, drained)) == sorted(map(tuple, originals))


def test_drain_completeness_with_interleaved_passes(search, make_events):
    events = make_events(30, seed=8)
    res = _resampler(search)
    for ev in events[:10]:
        res.push_event(ev)
    res.resample(3, 100.0)
    for ev in events[10:25]:
        res.push_event(ev)
    res.resample(None, 80.0)
    for ev in events[25:]:
        res.push_event(ev)
    res.resample(None, math.inf)
    assert len(list(res.drain())) == 30
    assert res.next_weights() is None


def test_later_pass_drains_first():
    res = _resampler()
    res.push_event(line_event(0.0, -1.0))
    res.push_event(line_event(1.0, 3.0))
    res.resample(0)
    res.push_event(line_event(5.0, 7.0))
    res.resample()
    assert list(res.drain()) == [[7.0], [1.0], [1.0]]


def test_unresampled_events_are_not_drained(dijet_events):
    res = _resampler()
    assert res.next_weights() is None
    res.push_event(dijet_events[0])
    assert res.next_weights() is None
    res.push_event(dijet_events[1])
    res.resample(0)
    res.push_event(dijet_events[0])
    assert list(res.drain()) == [[0.0], [0.0]]
    assert res.n_pending == 1
    assert res.n_events == 1
    res.resample()
    assert list(res.drain()) == [[-1.0]]


def test_structural_mismatch_leaves_store_unchanged(dijet_events):
    res = _resampler()
    assert res.push_event(dijet_events[0]) == 0

    three_jets = {
        "weights": [1.0],
        "type_sets": [{"type_id": JET, "momenta": [[1.0, 0.0, 0.0, 1.0]] * 3}],
    }
    other_type = {
        "weights": [1.0],
        "type_sets": [{"type_id": 11, "momenta": [[1.0, 0.0, 0.0, 1.0]] * 2}],
    }
    extra_type = {
        "weights": [1.0],
        "type_sets": [
            {"type_id": JET, "momenta": [[1.0, 0.0, 0.0, 1.0]] * 2},
            {"type_id": 11, "momenta": [[1.0, 0.0, 0.0, 1.0]]},
        ],
    }
    two_weights = {
        "weights": [1.0, 2.0],
        "type_sets": [{"type_id": JET, "momenta": [[1.0, 0.0, 0.0, 1.0]] * 2}],
    }
    for bad in (three_jets, other_type, extra_type, two_weights):
        with pytest.raises(StructuralMismatch):
            res.push_event(bad)
        assert res.n_events == 1

    assert res.push_event(dijet_events[1]) == 1
    res.resample(0)
    assert len(list(res.drain())) == 2


def test_push_copies_input():
    data = {
        "weights": [2.0],
        "type_sets": [{"type_id": 22, "momenta": [[1.0, 0.0, 0.0, 1.0]]}],
    }
    ev = line_event(3.0, -2.0)
    res = _resampler()
    res.push_event(data)
    res.push_event(ev)
    data["type_sets"][0]["momenta"][0][3] = 99.0
    ev.weights[0] = 100.0
    assert res.get_event(0).type_sets[0].momenta[0].pz == 1.0
    assert res.get_event(1).weights == [-2.0]


def test_pushing_unsupported_type_fails():
    with pytest.raises(TypeError):
        _resampler().push_event([1.0, 2.0])


def test_seed_fallback_to_oldest_surviving(caplog):
    res = _resampler()
    for pz in (0.0, 1.0, 2.0):
        res.push_event(line_event(pz))
    with caplog.at_level(logging.WARNING, logger="cellresampler.resampler"):
        report = res.resample(99, math.inf)
    assert report.seed == 0
    assert "not available" in caplog.text

    res.push_event(line_event(3.0))
    res.push_event(line_event(4.0))
    report = res.resample(1, math.inf)
    assert report.seed == 3
    assert report.n_events == 2


def test_seed_not_found():
    res = _resampler()
    with pytest.raises(SeedNotFound):
        res.resample(0)
    res.push_event(line_event(0.0))
    res.resample(0)
    with pytest.raises(SeedNotFound):
        res.resample(0)
    # the failed pass did not disturb the consumed event
    assert list(res.drain()) == [[1.0]]


def test_invalid_cell_diameter():
    res = _resampler()
    res.push_event(line_event(0.0))
    for bad in (-1.0, math.nan):
        with pytest.raises(ValueError):
            res.resample(0, bad)
    assert res.n_pending == 1


class _FailingDistance(Distance):
    def __init__(self, fail_after: int) -> None:
        self.inner = EuclWithScaledPt()
        self.calls = 0
        self.fail_after = fail_after

    def __call__(self, a, b):
        self.calls += 1
        if self.calls > self.fail_after:
            raise RuntimeError("distance backend failed")
        return self.inner(a, b)


def test_failed_pass_changes_nothing(make_events):
    events = make_events(40, seed=13)
    distance = _FailingDistance(fail_after=100)
    res = Resampler(ResamplerConfig(neighbour_search="naive"), distance=distance)
    for ev in events:
        res.push_event(ev)
    with pytest.raises(RuntimeError):
        res.resample(0, 50.0)
    assert res.n_pending == 40
    assert res.next_weights() is None
    assert [res.get_event(i).weights for i in range(40)] == [ev.weights for ev in events]

    distance.fail_after = math.inf
    report = res.resample(0, 50.0)
    assert report.n_events == 40


def test_absolute_policy_gives_uniform_sign_per_cell(make_events):
    events = make_events(80, seed=6, negative_fraction=0.45)
    res = _resampler(redistribution="absolute")
    for ev in events:
        res.push_event(ev)
    report = res.resample(0, 200.0)
    assert report.is_conserved()
    drained = list(res.drain())
    start = 0
    # drained cells come out last-first
    for size in reversed(report.cell_sizes):
        block = [w[0] for w in drained[start:start + size]]
        assert all(w >= 0 for w in block) or all(w <= 0 for w in block)
        start += size


def test_state_machine(dijet_events):
    res = _resampler()
    assert res.state is ResamplerState.EMPTY
    res.push_event(dijet_events[0])
    assert res.state is ResamplerState.COLLECTING
    res.push_event(dijet_events[1])
    res.resample(0)
    assert res.state is ResamplerState.RESAMPLED
    res.next_weights()
    assert res.state is ResamplerState.DRAINING
    res.next_weights()
    assert res.state is ResamplerState.EMPTY


def test_free_and_context_manager(dijet_events):
    with _resampler() as res:
        for ev in dijet_events:
            res.push_event(ev)
        res.resample(0)
        assert res.n_undrained == 2
    assert res.n_events == 0
    assert res.next_weights() is None
    res.free()


def test_reserve_is_only_a_hint(dijet_events):
    res = _resampler()
    res.reserve(0)
    res.reserve(1000)
    with pytest.raises(ValueError):
        res.reserve(-1)
    assert res.n_events == 0
    for ev in dijet_events:
        res.push_event(ev)
    res.resample(0)
    assert list(res.drain()) == [[0.0], [0.0]]


def test_report_dict_and_text(dijet_events):
    res = _resampler()
    for ev in dijet_events:
        res.push_event(ev)
    report = res.resample(0)
    d = report.to_dict()
    assert d["n_events"] == 2
    assert d["n_cells"] == 1
    assert d["max_cell_diameter"] is None
    assert d["n_negative_before"] == [1]
    assert d["n_negative_after"] == [0]
    assert d["is_conserved"] is True
    assert "unlimited" in str(report)


@pytest.mark.parametrize("policy", ["mean", "absolute"])
def test_single_cell_sums_are_exact_for_random_weights(search, policy):
    rng = random.Random(17)
    for _ in range(200):
        weights = [rng.uniform(-1.0, 1.0) for _ in range(7)]
        res = _resampler(search, redistribution=policy)
        for pz, w in enumerate(weights):
            res.push_event(line_event(float(pz), w))
        report = res.resample(0, math.inf)
        assert report.is_conserved()
        drained = [w[0] for w in res.drain()]
        assert math.fsum(drained) == math.fsum(weights)


def test_report_text_lists_ten_weights_without_trailer():
    res = _resampler()
    ev = line_event(0.0)
    ev.weights = [float(k) for k in range(10)]
    res.push_event(ev)
    text = str(res.resample(0))
    assert "weight[9] sum" in text
    assert "more weights" not in text

    res = _resampler()
    ev.weights = [float(k) for k in range(12)]
    res.push_event(ev)
    text = str(res.resample(0))
    assert "... and 2 more weights" in text


def test_index_is_released_after_pass(monkeypatch, make_events):
    built = weakref.WeakSet()

    def factory(distance_fn):
        index = VantagePointTree(distance_fn)
        built.add(index)
        return index

    monkeypatch.setitem(registry._REGISTRY, Search.TREE, factory)
    res = _resampler("tree")
    for ev in make_events(50, seed=3):
        res.push_event(ev)
    res.resample(0, 100.0)
    gc.collect()
    assert len(built) == 0
