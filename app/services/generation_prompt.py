import json
from textwrap import dedent
from typing import Any, List, Optional

from app.models.schemas import GenerationSettings


SYSTEM_PROMPT = dedent(
    """
    You are a QA test case generator. Derive test cases ONLY from the requirement chunk you are given.

    Reply with a single valid JSON object ONLY (no markdown, no backticks, no commentary):

    {
      "test_cases": [
        {
          "title": "Clear, descriptive test case title",
          "module": "Feature/component being tested",
          "priority": "high | medium | low",
          "tags": ["string"],
          "preconditions": "Required setup",
          "test_steps": [
            {"step_number": 1, "action": "string", "test_data": "string", "expected_result": "string"}
          ],
          "expected_result": "Overall expected result"
        }
      ]
    }

    Rules:
    - Keep each test atomic; avoid redundant cases.
    - "step_number" starts at 1 and increments.
    - Every test case has at least one step with a concrete expected result.
    - If nothing in the chunk is testable, return {"test_cases": []}.
    """
).strip()


def build_chunk_prompt(chunk_text: str, settings: GenerationSettings, doc_id: str, chunk_index: int) -> str:
    """Build the user prompt for one requirement chunk."""
    rules = [f"Produce at most {settings.max_cases} test cases."]
    if settings.include_negative:
        rules.append("Include negative cases (invalid input, unauthorized access, failures).")
    if settings.include_edge_cases:
        rules.append("Include edge cases (limits, empty values, boundaries).")
    if settings.coverage_mode and settings.coverage_mode != "standard":
        rules.append(f"Coverage mode: {settings.coverage_mode}.")

    prompt = (
        f"CONTEXT (doc {doc_id}, chunk #{chunk_index}):\n"
        "----- REQUIREMENT CHUNK -----\n"
        f"{chunk_text}\n"
        "----- RULES -----\n"
        + "\n".join(f"{i}) {rule}" for i, rule in enumerate(rules, start=1))
    )
    if settings.custom_instructions:
        prompt += f"\n----- ADDITIONAL INSTRUCTIONS -----\n{settings.custom_instructions}"
    return prompt


def _strip_fences(content: str) -> str:
    cleaned = content.strip()
    if cleaned.startswith("```"):
        # remove opening fence and optional language (e.g., ```json)
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def extract_json(content: str) -> Optional[Any]:
    """Extract the first JSON object or array from a model reply."""
    if not content:
        return None
    cleaned = _strip_fences(content)
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    # Fallback: first balanced {...} or [...] that parses
    for opener, closer in (("{", "}"), ("[", "]")):
        depth = 0
        start = -1
        for i, ch in enumerate(cleaned):
            if ch == opener:
                if depth == 0:
                    start = i
                depth += 1
            elif ch == closer and depth > 0:
                depth -= 1
                if depth == 0 and start != -1:
                    try:
                        return json.loads(cleaned[start : i + 1])
                    except ValueError:
                        start = -1
    return None


def parse_candidates(content: str) -> List[Any]:
    """Turn a model reply into a list of raw candidate dicts.

    Raises ValueError when the reply holds no JSON at all; individual
    candidates are validated later.
    """
    parsed = extract_json(content)
    if parsed is None:
        raise ValueError("model reply did not contain JSON")
    if isinstance(parsed, dict):
        for key in ("test_cases", "testCases", "cases"):
            if isinstance(parsed.get(key), list):
                parsed = parsed[key]
                break
        else:
            # a single test case object
            parsed = [parsed] if parsed else []
    if not isinstance(parsed, list):
        raise ValueError("model reply JSON is not a list of test cases")
    return list(parsed)
