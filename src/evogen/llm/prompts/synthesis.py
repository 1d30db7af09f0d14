"""JUnit 5 synthesis prompt.

Turns the class under test, optional EvoSuite inspiration and an optional
existing hand-written test into one request for a clean JUnit 5 test class.
The instructions change with the inputs: without inspiration the model is told
to derive cases from the source alone, and with an existing test it is told to
merge rather than replace.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from evogen.llm.prompts.base import PromptSection, PromptTemplate, code_block

if TYPE_CHECKING:
    from evogen.llm.synthesizer import SynthesisRequest

_SYSTEM_INSTRUCTION = """\
You are an expert Java developer specializing in writing clean, modern and \
maintainable JUnit 5 tests. You synthesize a single, comprehensive JUnit 5 test \
file for one Java class."""

_RULES = """\
Follow these rules STRICTLY:
1. OUTPUT JUNIT 5 ONLY: the code MUST use JUnit 5 (``org.junit.jupiter.api.*``).
2. DESCRIPTIVE NAMING: use clear test method names \
(e.g. ``add_withPositiveNumbers_returnsSum``).
3. MERGE, DON'T REPLACE: if an existing test file is provided, keep all of its tests \
and add new ones.
4. ASSERTIONS: use standard JUnit 5 assertions (``assertEquals``, ``assertThrows``, \
``assertAll`` ...).
5. NO EVOSUITE SPECIFICS: drop EvoSuite runners, scaffolding and ``@EvoSuiteClassExclude`` \
annotations if inspiration was provided.
6. SAME PACKAGE: declare the same package as the class under test.
7. OUTPUT FORMAT: return ONLY the complete Java code in a single ```java code block."""

_INSPIRATION_NOTE = (
    "An EvoSuite test is provided as inspiration. Treat it as a source of truth for "
    "test cases: extract the method calls, inputs and assertions to keep coverage high, "
    "then rewrite them as readable JUnit 5 tests."
)

_NO_INSPIRATION_NOTE = (
    "IMPORTANT: no EvoSuite test is available. Derive high-quality test cases from your "
    "own analysis of the source code. Cover common scenarios, edge cases and null inputs."
)

_EXISTING_TEST_NOTE = (
    "An existing hand-written test is provided. Use it as the style guide and as the "
    "base of your output; do not remove any of its tests."
)

_NO_EXISTING_TEST_NOTE = "No existing test file was found. Create a new one from scratch."


class JUnit5SynthesisTemplate(PromptTemplate):
    """Prompt for synthesizing a JUnit 5 test from source and inspiration."""

    @property
    def name(self) -> str:
        return "junit5_synthesis"

    def _system_instruction(self, _request: SynthesisRequest) -> str:
        return _SYSTEM_INSTRUCTION

    def _build_sections(self, request: SynthesisRequest) -> list[PromptSection]:
        inputs = [_INSPIRATION_NOTE if request.inspiration else _NO_INSPIRATION_NOTE]
        inputs.append(_EXISTING_TEST_NOTE if request.existing_test else _NO_EXISTING_TEST_NOTE)

        sections = [
            PromptSection(label="Task", content="\n\n".join(inputs)),
            PromptSection(label="Rules", content=_RULES),
            PromptSection(
                label="Source Code Under Test",
                content=f"Class: {request.unit.name}\n\n{code_block(request.source)}",
            ),
        ]
        if request.inspiration:
            sections.append(
                PromptSection(
                    label="EvoSuite Test (Inspiration for Test Cases)",
                    content=code_block(request.inspiration),
                )
            )
        if request.existing_test:
            sections.append(
                PromptSection(
                    label="Existing JUnit 5 Test (Style Guide & Base)",
                    content=code_block(request.existing_test),
                )
            )
        return sections
