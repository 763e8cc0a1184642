"""
Chunked Test Case Generator API

FastAPI backend that turns long requirement documents into QA test cases one
chunk at a time, resumes where it left off, and folds near-duplicate cases
together.

Architecture Overview:
- Repository pattern for data access (ABC interfaces, SQLAlchemy implementations)
- Dependency Injection container wired through FastAPI Depends
- Pluggable AI provider (OpenAI or Gemini) behind IAIService

Key Features:
- Requirement chunking with overlapping windows
- Generation tracked per (chunk, settings fingerprint) so "Generate More" resumes in batches
- Low-yield chunks generated first
- Exact duplicates skipped on insert (content signature)
- Near duplicates reconciled with a 64-bit SimHash once a document is finished
- Structured logging with structlog

Usage:
1. Put OPENAI_API_KEY (or AI_PROVIDER=gemini and GEMINI_API_KEY) in .env
2. Install: pip install -e ".[test]"
3. Run the application: python main.py
4. Access API docs at: http://localhost:8000/api/v1/docs

API Endpoints:
- POST /api/v1/documents/{doc_id}/chunks - Chunk and store a requirement document
- GET /api/v1/documents/{doc_id}/chunks - List stored chunks
- GET /api/v1/documents/{doc_id}/coverage - Per-chunk generation yield
- POST /api/v1/generate-more - Generate test cases for the next batch of chunks
- GET /api/v1/generate-more?docId=&settingsHash= - Remaining chunk status
- POST /api/v1/generate-more/settings-hash - Fingerprint a settings object
- POST /api/v1/reconcile-duplicates - Reconcile (or preview) near duplicates
- GET /api/v1/reconcile-duplicates/stats - Duplicate statistics
- POST /api/v1/reconcile-duplicates/backfill - Compute missing SimHashes
- GET/DELETE /api/v1/test-cases/{id} - Stored test cases
- GET /api/v1/health - Health check

Typical flow:
    POST /documents/D1/chunks            {"text": "..."}
    POST /generate-more                  {"docId": "D1", "projectId": "P1", "settings": {...}}
    ... repeat until remainingChunks == 0 (reconciliation runs automatically)

Testing:
    pytest
"""
