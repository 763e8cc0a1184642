import json
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum


class CamelModel(BaseModel):
    """Wire models for the generation endpoints (camelCase on the wire, snake_case in Python)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class TestCaseStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    DEPRECATED = "deprecated"


class TestCasePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TestStep(BaseModel):
    step_number: int = Field(..., description="Step sequence number")
    action: str = Field(..., description="Action to be performed")
    expected_result: str = Field("", description="Expected result of the action")
    test_data: Optional[str] = Field(None, description="Test data required for this step")


class TestCaseBase(BaseModel):
    title: str = Field(..., description="Test case title")
    module: str = Field(default="General", description="Feature/component being tested")
    description: Optional[str] = Field(None, description="Detailed description of the test case")
    priority: TestCasePriority = Field(default=TestCasePriority.MEDIUM)
    tags: List[str] = Field(default_factory=list, description="Tags for categorization")
    preconditions: Optional[str] = Field(None, description="Preconditions for test execution")
    test_steps: List[TestStep] = Field(default_factory=list, description="List of test steps")
    expected_result: str = Field(default="", description="Overall expected result")


class TestCaseCreate(TestCaseBase):
    project_id: Optional[str] = None
    doc_id: Optional[str] = None
    chunk_id: Optional[str] = None
    chunk_index: Optional[int] = None
    signature: Optional[str] = None
    simhash: Optional[str] = None
    source_model: Optional[str] = None


class TestCaseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TestCasePriority] = None
    tags: Optional[List[str]] = None
    preconditions: Optional[str] = None
    test_steps: Optional[List[TestStep]] = None
    expected_result: Optional[str] = None
    status: Optional[TestCaseStatus] = None
    simhash: Optional[str] = None


class TestCase(TestCaseCreate):
    id: int
    status: TestCaseStatus = TestCaseStatus.ACTIVE
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


_STEP_KEYS = {
    "step": "step_number",
    "stepNumber": "step_number",
    "description": "action",
    "expectedResult": "expected_result",
    "testData": "test_data",
}


class TestCaseCandidate(TestCaseBase):
    """A single test case proposed by the AI provider.

    Providers are prompted for snake_case keys but frequently answer with the
    camelCase shape (``testCase``, ``testSteps``, ``expectedResult``); both are
    accepted. Anything that still fails validation is skipped by the caller.
    """

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "title" not in data and data.get("testCase"):
            data["title"] = data.pop("testCase")
        if "test_steps" not in data and "testSteps" in data:
            data["test_steps"] = data.pop("testSteps")
        if "expected_result" not in data and "expectedResult" in data:
            data["expected_result"] = data.pop("expectedResult")

        steps = []
        for index, raw in enumerate(data.get("test_steps") or []):
            if not isinstance(raw, dict):
                steps.append(raw)
                continue
            step = {_STEP_KEYS.get(k, k): v for k, v in raw.items()}
            step.setdefault("step_number", index + 1)
            if isinstance(step.get("test_data"), (dict, list)):
                step["test_data"] = json.dumps(step["test_data"])
            steps.append(step)
        data["test_steps"] = steps

        priority = data.get("priority")
        if isinstance(priority, str):
            priority = priority.strip().lower()
            valid = {p.value for p in TestCasePriority}
            data["priority"] = priority if priority in valid else TestCasePriority.MEDIUM.value
        if not data.get("module"):
            data.pop("module", None)
        return data

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("test_steps")
    @classmethod
    def _has_steps(cls, value: List[TestStep]) -> List[TestStep]:
        if not value:
            raise ValueError("at least one test step is required")
        return value


class GenerationOutput(BaseModel):
    """Raw result of one AI provider call."""

    candidates: List[Any] = Field(default_factory=list)
    usage: Dict[str, Any] = Field(default_factory=dict)


# --- Chunk tracking -----------------------------------------------------------


class GenerationSettings(CamelModel):
    model: str = Field(default="gpt-4o-mini", description="Model identifier")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_cases: int = Field(default=6, ge=1, le=50, description="Maximum test cases per chunk call")
    custom_instructions: Optional[str] = None
    coverage_mode: str = Field(default="standard")
    include_negative: bool = True
    include_edge_cases: bool = True
    schema_version: str = "v1"
    prompt_template_version: str = "v1.0"
    project_id: Optional[str] = None


class Chunk(CamelModel):
    id: str
    doc_id: Optional[str] = None
    chunk_index: int = Field(..., ge=0)
    text: str
    text_hash: Optional[str] = None
    token_count: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class GenerationRun(CamelModel):
    id: Optional[str] = None
    doc_id: Optional[str] = None
    chunk_id: str
    settings_hash: str
    model: Optional[str] = None
    saved: int = 0
    skipped: int = 0
    requested: int = 0
    created_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ChunkGenerationResult(CamelModel):
    chunk_id: str
    chunk_index: int
    saved: int = 0
    skipped: int = 0
    reused: bool = False
    error: Optional[str] = None


class ReconciliationSummary(CamelModel):
    duplicate_groups: int
    cases_removed: int
    cases_merged: int


class GenerateMoreRequest(CamelModel):
    # doc_id and settings are optional here so that a missing value is
    # reported as a structured 400 rather than a bare validation error.
    doc_id: Optional[str] = None
    project_id: Optional[str] = None
    settings: Optional[GenerationSettings] = None
    max_chunks_per_call: Optional[int] = Field(default=None, ge=1)
    use_coverage_prioritization: bool = True
    chunks: Optional[List[Chunk]] = None
    runs: Optional[List[GenerationRun]] = None


class GenerateMoreResponse(CamelModel):
    success: bool
    processed_chunks: int = 0
    remaining_chunks: int = 0
    total_chunks: int = 0
    saved: int = 0
    skipped: int = 0
    reused: int = 0
    results: List[ChunkGenerationResult] = Field(default_factory=list)
    reconciliation: Optional[ReconciliationSummary] = None
    settings_hash: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None


class GenerateMoreStatus(CamelModel):
    total_chunks: int
    remaining_chunks: int
    processed_chunks: int
    can_generate_more: bool


class SettingsHashResponse(CamelModel):
    settings_hash: str


class ChunkDocumentRequest(CamelModel):
    text: str = Field(..., description="Full requirement document text")
    max_chars: Optional[int] = Field(default=None, ge=100)
    overlap: Optional[int] = Field(default=None, ge=0)


class ChunkDocumentResponse(CamelModel):
    doc_id: str
    total_chunks: int
    chunks: List[Chunk] = Field(default_factory=list)


class ChunkCoverage(CamelModel):
    chunk_id: str
    chunk_index: int
    runs: int
    saved: int
    skipped: int
    coverage: float = Field(..., description="Historical yield: saved / requested")
    level: str


class DocumentCoverage(CamelModel):
    doc_id: str
    overall: float
    chunks: List[ChunkCoverage] = Field(default_factory=list)


# --- Reconciliation -------------------------------------------------------------


class DuplicateGroup(CamelModel):
    keep_id: int
    duplicate_ids: List[int] = Field(default_factory=list)


class DuplicateGroupDetail(CamelModel):
    keep_id: int
    keep_title: str
    removed_ids: List[int]
    removed_titles: List[str]
    reason: str


class SimhashStats(CamelModel):
    total_cases: int
    with_simhash: int
    without_simhash: int
    unique_hashes: int


class ReconcileResult(CamelModel):
    total_cases: int
    duplicate_groups: int
    cases_removed: int
    cases_merged: int
    details: List[DuplicateGroupDetail] = Field(default_factory=list)
    stats: SimhashStats


class PreviewCase(CamelModel):
    id: int
    title: str
    step_count: int
    created_at: Optional[datetime] = None


class PreviewGroup(CamelModel):
    keep_id: int
    duplicates: List[PreviewCase]
    would_remove: int


class ReconcilePreview(CamelModel):
    duplicate_groups: List[PreviewGroup] = Field(default_factory=list)
    total_would_remove: int = 0


class ReconcileRequest(CamelModel):
    project_id: Optional[str] = None
    threshold: int = Field(default=4, ge=0, le=64)
    preview: bool = False


class ReconcileResponse(CamelModel):
    success: bool
    result: Optional[ReconcileResult] = None
    preview: Optional[ReconcilePreview] = None
    error: Optional[str] = None


class ReconciliationStats(CamelModel):
    total_cases: int
    with_simhash: int
    potential_duplicates: int
    estimated_savings: int


class BackfillResponse(CamelModel):
    updated: int
