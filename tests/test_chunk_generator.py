import pytest

from app.core.exceptions import AIGenerationError
from app.services.settings_hash import build_settings_hash
from tests.fakes import make_candidate, make_chunks


@pytest.mark.asyncio
async def test_saves_candidates_and_records_run(chunk_generator, run_repository, test_case_repository, settings_s):
    chunk = make_chunks("D1", 1)[0]

    result = await chunk_generator.generate_for_chunk("D1", chunk, settings_s, project_id="P1")

    assert result.saved == 2
    assert result.skipped == 0
    assert result.error is None
    assert not result.reused

    run = await run_repository.find(chunk.id, build_settings_hash(settings_s))
    assert run is not None
    assert (run.saved, run.skipped, run.requested) == (2, 0, settings_s.max_cases)

    cases = await test_case_repository.list_by_project("P1")
    assert len(cases) == 2
    assert all(c.simhash and c.signature for c in cases)
    assert all(c.chunk_id == chunk.id and c.doc_id == "D1" for c in cases)


@pytest.mark.asyncio
async def test_existing_run_is_reused_without_calling_model(chunk_generator, fake_ai, settings_s):
    chunk = make_chunks("D1", 1)[0]
    await chunk_generator.generate_for_chunk("D1", chunk, settings_s)

    result = await chunk_generator.generate_for_chunk("D1", chunk, settings_s)

    assert result.reused
    assert result.saved == 2
    assert fake_ai.calls == [0]


@pytest.mark.asyncio
async def test_exact_duplicates_and_malformed_candidates_are_skipped(chunk_generator, fake_ai, settings_s):
    chunk = make_chunks("D1", 1)[0]
    good = make_candidate("x")
    fake_ai.responses[0] = [
        good,
        dict(good, title="  " + good["title"].upper() + "  "),  # same signature after normalisation
        {"title": "", "test_steps": [{"action": "a"}]},
        {"title": "No steps", "test_steps": []},
        "not a dict",
    ]

    result = await chunk_generator.generate_for_chunk("D1", chunk, settings_s.model_copy(update={"max_cases": 10}))

    assert result.saved == 1
    assert result.skipped == 4


@pytest.mark.asyncio
async def test_duplicates_of_stored_cases_are_skipped(chunk_generator, fake_ai, settings_s):
    chunks = make_chunks("D1", 2)
    same = make_candidate("shared")
    fake_ai.responses[0] = [same]
    fake_ai.responses[1] = [same]

    await chunk_generator.generate_for_chunk("D1", chunks[0], settings_s, project_id="P1")
    result = await chunk_generator.generate_for_chunk("D1", chunks[1], settings_s, project_id="P1")

    assert (result.saved, result.skipped) == (0, 1)


@pytest.mark.asyncio
async def test_extra_candidates_are_truncated(chunk_generator, fake_ai, settings_s):
    chunk = make_chunks("D1", 1)[0]
    fake_ai.responses[0] = [make_candidate(f"c{i}") for i in range(6)]

    result = await chunk_generator.generate_for_chunk("D1", chunk, settings_s.model_copy(update={"max_cases": 3}))

    assert result.saved == 3


@pytest.mark.asyncio
async def test_provider_failure_is_reported_not_raised(chunk_generator, fake_ai, run_repository, settings_s):
    chunk = make_chunks("D1", 1)[0]
    fake_ai.responses[0] = AIGenerationError("fake", "rate limited")

    result = await chunk_generator.generate_for_chunk("D1", chunk, settings_s)

    assert result.error == "[fake] generation failed: rate limited"
    assert (result.saved, result.skipped) == (0, 0)
    assert await run_repository.find(chunk.id, build_settings_hash(settings_s)) is None


@pytest.mark.asyncio
async def test_progress_callback_errors_are_ignored(chunk_generator, settings_s):
    chunk = make_chunks("D1", 1)[0]
    steps = []

    def on_progress(step):
        steps.append(step)
        raise RuntimeError("ui went away")

    result = await chunk_generator.generate_for_chunk("D1", chunk, settings_s, on_progress=on_progress)

    assert result.saved == 2
    assert steps[0] == "Processing chunk 1..."
    assert steps[-1] == "Chunk 1 complete: 2 saved, 0 skipped"
