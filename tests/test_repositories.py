import pytest

from app.models.schemas import GenerationRun
from app.services.chunking import chunk_requirement
from tests.fakes import make_candidate


@pytest.mark.asyncio
async def test_rechunking_same_text_is_an_upsert(chunk_repository):
    text = "The cart total updates when quantities change. " * 30
    chunks = chunk_requirement("D1", text, max_chars=400, overlap=40)

    await chunk_repository.save_chunks(chunks)
    await chunk_repository.save_chunks(chunk_requirement("D1", text, max_chars=400, overlap=40))

    stored = await chunk_repository.get_by_doc_id("D1")
    assert [c.id for c in stored] == [c.id for c in chunks]
    assert await chunk_repository.get_by_doc_id("other") == []


@pytest.mark.asyncio
async def test_rechunking_edited_text_replaces_old_chunks(chunk_repository):
    await chunk_repository.save_chunks(chunk_requirement("D1", "a" * 250, max_chars=100, overlap=0))
    await chunk_repository.save_chunks(chunk_requirement("D2", "c" * 150, max_chars=100, overlap=0))

    await chunk_repository.save_chunks(chunk_requirement("D1", "b" * 150, max_chars=100, overlap=0))

    stored = await chunk_repository.get_by_doc_id("D1")
    assert [c.chunk_index for c in stored] == [0, 1]
    assert {c.text[0] for c in stored} == {"b"}
    assert len(await chunk_repository.get_by_doc_id("D2")) == 2


@pytest.mark.asyncio
async def test_second_run_for_same_chunk_and_settings_keeps_the_first(run_repository):
    first = await run_repository.record(GenerationRun(doc_id="D1", chunk_id="c0", settings_hash="S", saved=3, requested=4))
    second = await run_repository.record(GenerationRun(doc_id="D1", chunk_id="c0", settings_hash="S", saved=1, requested=4))

    assert second.id == first.id
    assert second.saved == 3
    assert len(await run_repository.list_by_chunk_ids(["c0"])) == 1
    assert (await run_repository.find("c0", "S")).saved == 3


@pytest.mark.asyncio
async def test_runs_are_listed_by_chunk(run_repository):
    await run_repository.record(GenerationRun(doc_id="D1", chunk_id="c0", settings_hash="S"))
    await run_repository.record(GenerationRun(doc_id="D1", chunk_id="c0", settings_hash="T"))
    await run_repository.record(GenerationRun(doc_id="D2", chunk_id="x0", settings_hash="S"))

    assert {r.settings_hash for r in await run_repository.list_by_chunk_ids(["c0"])} == {"S", "T"}
    assert len(await run_repository.list_by_chunk_ids(["c0", "x0"])) == 3
    assert await run_repository.list_by_chunk_ids([]) == []
    assert await run_repository.find("x0", "T") is None


@pytest.mark.asyncio
async def test_signature_lookup_is_scoped_to_project(test_case_repository):
    from app.models import schemas
    from app.services.case_signature import build_case_signature

    candidate = schemas.TestCaseCandidate.model_validate(make_candidate("sig"))
    signature = build_case_signature(candidate)
    await test_case_repository.create(
        schemas.TestCaseCreate(**candidate.model_dump(), project_id="P1", signature=signature)
    )

    assert await test_case_repository.get_by_signature(signature, "P1") is not None
    assert await test_case_repository.get_by_signature(signature, "P2") is None
    assert await test_case_repository.get_by_signature(signature, None) is None
