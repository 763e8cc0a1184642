from app.models.schemas import GenerationRun
from app.services.chunk_selector import find_remaining_chunks, prioritize_by_coverage, select_remaining_chunks
from app.services.coverage import coverage_level, document_coverage
from tests.fakes import make_chunks


def _run(chunk_id, settings_hash="S", saved=0, skipped=0, requested=0):
    return GenerationRun(chunk_id=chunk_id, settings_hash=settings_hash, saved=saved, skipped=skipped, requested=requested)


def test_no_runs_means_everything_remains_in_order():
    chunks = make_chunks("D1", 5)
    remaining = find_remaining_chunks(list(reversed(chunks)), [], "S")
    assert [c.chunk_index for c in remaining] == [0, 1, 2, 3, 4]


def test_runs_under_other_settings_do_not_count():
    chunks = make_chunks("D1", 3)
    runs = [_run("D1-c0", "S"), _run("D1-c1", "OTHER")]
    remaining = find_remaining_chunks(chunks, runs, "S")
    assert [c.id for c in remaining] == ["D1-c1", "D1-c2"]


def test_all_processed_is_empty_not_error():
    chunks = make_chunks("D1", 2)
    runs = [_run(c.id) for c in chunks]
    assert select_remaining_chunks(chunks, runs, "S") == []
    assert select_remaining_chunks([], [], "S") == []


def test_selection_is_idempotent():
    chunks = make_chunks("D1", 4)
    runs = [_run("D1-c2")]
    first = select_remaining_chunks(chunks, runs, "S")
    second = select_remaining_chunks(chunks, runs, "S")
    assert [c.id for c in first] == [c.id for c in second]


def test_low_yield_chunks_come_first():
    chunks = make_chunks("D1", 4)
    # history under other settings: chunk 3 yielded poorly, chunk 1 well
    runs = [
        _run("D1-c3", "OLD", saved=1, requested=6),
        _run("D1-c1", "OLD", saved=6, requested=6),
    ]
    ordered = prioritize_by_coverage(chunks, runs, coverage_threshold=0.7)
    assert [c.chunk_index for c in ordered] == [3, 0, 2, 1]


def test_prioritization_can_be_disabled():
    chunks = make_chunks("D1", 3)
    runs = [_run("D1-c2", "OLD", saved=0, requested=6)]
    remaining = select_remaining_chunks(chunks, runs, "S", prioritize=False)
    assert [c.chunk_index for c in remaining] == [0, 1, 2]


def test_document_coverage_levels():
    chunks = make_chunks("D1", 3)
    runs = [
        _run("D1-c0", saved=5, requested=5),
        _run("D1-c1", saved=1, requested=4),
    ]
    coverage = document_coverage("D1", chunks, runs)

    assert [c.level for c in coverage.chunks] == ["high", "low", "low"]
    assert coverage.chunks[0].coverage == 1.0
    assert coverage.chunks[2].runs == 0
    assert coverage.overall == 6 / 9


def test_ratio_falls_back_to_saved_plus_skipped():
    chunks = make_chunks("D1", 1)
    coverage = document_coverage("D1", chunks, [_run("D1-c0", saved=1, skipped=1)])
    assert coverage.chunks[0].coverage == 0.5
    assert coverage_level(0.5) == "medium"
