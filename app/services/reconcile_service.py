from typing import Dict, List, Optional, Sequence

import structlog

from app.core.exceptions import ReconciliationError
from app.models.schemas import (
    DuplicateGroup,
    DuplicateGroupDetail,
    PreviewCase,
    PreviewGroup,
    ReconcilePreview,
    ReconcileResult,
    ReconciliationStats,
    SimhashStats,
    TestCase,
    TestCaseUpdate,
)
from app.repositories.interfaces.test_case_repository import ITestCaseRepository
from app.services.simhash import build_test_case_simhash, hamming, parse_simhash

logger = structlog.get_logger()

DEFAULT_HAMMING_THRESHOLD = 4


def _keeper_sort_key(case: TestCase):
    # earliest created first; then the most complete case; then the lowest id
    created = (0, case.created_at) if case.created_at else (1,)
    return (created, -len(case.test_steps), case.id)


def find_duplicate_groups(cases: Sequence[TestCase], threshold: int = DEFAULT_HAMMING_THRESHOLD) -> List[DuplicateGroup]:
    """Group near-duplicate cases by SimHash distance.

    Two cases share a group when a chain of pairs, each within ``threshold``
    bits, connects them (transitive closure via union-find). Cases without a
    fingerprint take no part. Only groups with more than one case are
    returned; ``keep_id`` is chosen by ``_keeper_sort_key``.
    """
    comparable = [(c, parse_simhash(c.simhash)) for c in cases]
    comparable = [(c, h) for c, h in comparable if h is not None]

    parent = list(range(len(comparable)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i in range(len(comparable)):
        for j in range(i + 1, len(comparable)):
            if hamming(comparable[i][1], comparable[j][1]) <= threshold:
                root_i, root_j = find(i), find(j)
                if root_i != root_j:
                    parent[max(root_i, root_j)] = min(root_i, root_j)

    members: Dict[int, List[TestCase]] = {}
    for index, (case, _) in enumerate(comparable):
        members.setdefault(find(index), []).append(case)

    groups: List[DuplicateGroup] = []
    for root in sorted(members):
        group = members[root]
        if len(group) < 2:
            continue
        keeper = min(group, key=_keeper_sort_key)
        groups.append(
            DuplicateGroup(
                keep_id=keeper.id,
                duplicate_ids=[c.id for c in group if c.id != keeper.id],
            )
        )
    return groups


def simhash_stats(cases: Sequence[TestCase]) -> SimhashStats:
    hashes = [c.simhash for c in cases if c.simhash]
    return SimhashStats(
        total_cases=len(cases),
        with_simhash=len(hashes),
        without_simhash=len(cases) - len(hashes),
        unique_hashes=len(set(hashes)),
    )


def _merge_tags(keeper: TestCase, removed: Sequence[TestCase]) -> List[str]:
    merged = list(keeper.tags)
    for case in removed:
        for tag in case.tags:
            if tag not in merged:
                merged.append(tag)
    return merged


class ReconcileService:
    """Collapses near-duplicate test cases of a project into one retained case"""

    def __init__(self, test_case_repository: ITestCaseRepository):
        self.test_case_repository = test_case_repository

    async def reconcile_project_duplicates(
        self,
        project_id: Optional[str] = None,
        hamming_threshold: int = DEFAULT_HAMMING_THRESHOLD,
    ) -> ReconcileResult:
        """Remove near duplicates, carrying their tags over to the kept case.

        Idempotent: a second run without new cases finds no groups.
        """
        logger.info("Reconciliation started", project_id=project_id, threshold=hamming_threshold)
        try:
            cases = await self.test_case_repository.list_by_project(project_id)
            stats = simhash_stats(cases)
            if stats.with_simhash == 0:
                logger.info("No test cases with SimHash found", project_id=project_id)
                return ReconcileResult(
                    total_cases=len(cases),
                    duplicate_groups=0,
                    cases_removed=0,
                    cases_merged=0,
                    stats=stats,
                )

            by_id = {c.id: c for c in cases}
            groups = find_duplicate_groups(cases, hamming_threshold)

            details: List[DuplicateGroupDetail] = []
            remove_ids: List[int] = []
            merged = 0
            for group in groups:
                keeper = by_id[group.keep_id]
                removed = [by_id[i] for i in group.duplicate_ids]

                tags = _merge_tags(keeper, removed)
                if tags != keeper.tags:
                    await self.test_case_repository.update(keeper.id, TestCaseUpdate(tags=tags))
                    merged += 1

                remove_ids.extend(group.duplicate_ids)
                details.append(
                    DuplicateGroupDetail(
                        keep_id=keeper.id,
                        keep_title=keeper.title,
                        removed_ids=group.duplicate_ids,
                        removed_titles=[c.title for c in removed],
                        reason=f"Similar content (Hamming distance <= {hamming_threshold})",
                    )
                )

            removed_count = await self.test_case_repository.delete_many(remove_ids)
        except Exception as e:
            logger.error("Reconciliation failed", project_id=project_id, error=str(e))
            raise ReconciliationError(str(e)) from e

        result = ReconcileResult(
            total_cases=len(cases),
            duplicate_groups=len(groups),
            cases_removed=removed_count,
            cases_merged=merged,
            details=details,
            stats=stats,
        )
        logger.info(
            "Reconciliation complete",
            project_id=project_id,
            duplicate_groups=result.duplicate_groups,
            cases_removed=result.cases_removed,
            cases_merged=result.cases_merged,
        )
        return result

    async def preview_project_duplicates(
        self,
        project_id: Optional[str] = None,
        hamming_threshold: int = DEFAULT_HAMMING_THRESHOLD,
    ) -> ReconcilePreview:
        """Same grouping as reconciliation, without touching storage"""
        cases = await self.test_case_repository.list_by_project(project_id)
        by_id = {c.id: c for c in cases}
        groups = find_duplicate_groups(cases, hamming_threshold)

        preview_groups = []
        for group in groups:
            ids = [group.keep_id, *group.duplicate_ids]
            preview_groups.append(
                PreviewGroup(
                    keep_id=group.keep_id,
                    duplicates=[
                        PreviewCase(
                            id=by_id[i].id,
                            title=by_id[i].title,
                            step_count=len(by_id[i].test_steps),
                            created_at=by_id[i].created_at,
                        )
                        for i in ids
                    ],
                    would_remove=len(group.duplicate_ids),
                )
            )
        return ReconcilePreview(
            duplicate_groups=preview_groups,
            total_would_remove=sum(g.would_remove for g in preview_groups),
        )

    async def get_reconciliation_stats(self, project_id: Optional[str] = None) -> ReconciliationStats:
        cases = await self.test_case_repository.list_by_project(project_id)
        stats = simhash_stats(cases)
        potential = sum(len(g.duplicate_ids) for g in find_duplicate_groups(cases, DEFAULT_HAMMING_THRESHOLD))
        return ReconciliationStats(
            total_cases=stats.total_cases,
            with_simhash=stats.with_simhash,
            potential_duplicates=potential,
            estimated_savings=round(potential / stats.total_cases * 100) if stats.total_cases else 0,
        )

    async def backfill_simhashes(self, project_id: Optional[str] = None) -> int:
        """Fingerprint cases stored before SimHash was recorded (or imported without one)"""
        updated = 0
        for case in await self.test_case_repository.list_by_project(project_id):
            if case.simhash:
                continue
            await self.test_case_repository.update(case.id, TestCaseUpdate(simhash=build_test_case_simhash(case)))
            updated += 1
        logger.info("SimHash backfill complete", project_id=project_id, updated=updated)
        return updated
