"""Tests for pulling Java source out of model responses."""

from __future__ import annotations

import pytest

from evogen.llm.extraction import extract_code_block


def test_java_fence_preferred_over_other_fences() -> None:
    response = (
        "Run it with:\n```bash\nmvn test\n```\n"
        "Here is the test:\n```java\npackage com.acme;\nclass CalculatorTest {}\n```\n"
    )

    assert extract_code_block(response) == "package com.acme;\nclass CalculatorTest {}"


def test_java_fence_is_case_insensitive() -> None:
    assert extract_code_block("```Java\nclass A {}\n```") == "class A {}"


def test_unterminated_java_fence_runs_to_end() -> None:
    assert extract_code_block("```java\nclass A {\n}\n") == "class A {\n}"


def test_javascript_fence_is_not_a_java_fence() -> None:
    response = "```javascript\nconsole.log(1)\n```\n```java\nclass A {}\n```"

    assert extract_code_block(response) == "class A {}"


def test_generic_fence_fallback() -> None:
    assert extract_code_block("```\nclass A {}\n```") == "class A {}"


@pytest.mark.parametrize(
    "response",
    ["package com.acme;\n\nclass A {}\n", "  import org.junit.jupiter.api.Test;\nclass A {}"],
)
def test_raw_source_accepted(response: str) -> None:
    assert extract_code_block(response) == response.strip()


@pytest.mark.parametrize("response", ["", "I could not generate a test for this class."])
def test_no_code_yields_empty_string(response: str) -> None:
    assert extract_code_block(response) == ""
