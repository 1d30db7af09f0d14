"""Tests for the prompt template system and the JUnit 5 synthesis prompt."""

from __future__ import annotations

from evogen.llm.prompts.base import PromptSection, code_block, join_sections
from evogen.llm.prompts.synthesis import JUnit5SynthesisTemplate
from evogen.llm.synthesizer import SynthesisRequest
from evogen.models import CompilationUnit

_SOURCE = "package com.acme;\n\npublic class Calculator {}\n"


def _request(**overrides: str | None) -> SynthesisRequest:
    return SynthesisRequest(
        unit=CompilationUnit("com.acme.Calculator"), source=_SOURCE, **overrides
    )


def test_code_block_wraps_and_trims() -> None:
    assert code_block("int x;\n\n") == "```java\nint x;\n```"
    assert code_block("a: 1", language="yaml") == "```yaml\na: 1\n```"


def test_join_sections_skips_empty() -> None:
    joined = join_sections(
        [
            PromptSection("One", "first"),
            PromptSection("Empty", ""),
            PromptSection("Two", "second"),
        ]
    )

    assert joined == "## One\n\nfirst\n\n---\n\n## Two\n\nsecond"


def test_render_produces_system_and_user_messages() -> None:
    prompt = JUnit5SynthesisTemplate().render(_request())

    assert [m.role for m in prompt.messages] == ["system", "user"]
    assert "JUnit 5" in prompt.system_message
    assert "Class: com.acme.Calculator" in prompt.user_message
    assert "```java\npackage com.acme;" in prompt.user_message
    assert JUnit5SynthesisTemplate().name == "junit5_synthesis"


def test_inspiration_and_existing_test_sections() -> None:
    prompt = JUnit5SynthesisTemplate().render(
        _request(
            inspiration="public class Calculator_ESTest {}",
            existing_test="class CalculatorTest { void handWritten() {} }",
        )
    )
    user = prompt.user_message

    assert "## EvoSuite Test (Inspiration for Test Cases)" in user
    assert "Calculator_ESTest" in user
    assert "## Existing JUnit 5 Test (Style Guide & Base)" in user
    assert "do not remove any of its tests" in user
    assert "no EvoSuite test is available" not in user


def test_source_only_prompt_asks_for_own_analysis() -> None:
    user = JUnit5SynthesisTemplate().render(_request()).user_message

    assert "no EvoSuite test is available" in user
    assert "No existing test file was found" in user
    assert "EvoSuite Test (Inspiration" not in user
    assert "Existing JUnit 5 Test" not in user
