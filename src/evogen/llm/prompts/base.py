"""Base prompt template system: labelled sections rendered into chat messages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from evogen.llm.engine import LLMMessage

if TYPE_CHECKING:
    from evogen.llm.synthesizer import SynthesisRequest


@dataclass
class PromptSection:
    """A labelled block of content within a rendered prompt."""

    label: str
    content: str


@dataclass
class RenderedPrompt:
    """The final output of a prompt template, a list of LLM messages."""

    messages: list[LLMMessage] = field(default_factory=list)

    @property
    def system_message(self) -> str:
        """Return the first system message content, or empty string."""
        for msg in self.messages:
            if msg.role == "system":
                return msg.content
        return ""

    @property
    def user_message(self) -> str:
        """Return the first user message content, or empty string."""
        for msg in self.messages:
            if msg.role == "user":
                return msg.content
        return ""


class PromptTemplate(ABC):
    """Abstract base class for prompt templates.

    Subclasses implement ``_system_instruction`` and ``_build_sections``;
    the base class joins the sections and produces the message list.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable template identifier (e.g. 'junit5_synthesis')."""

    @abstractmethod
    def _system_instruction(self, request: SynthesisRequest) -> str:
        """Return the system-level instruction text."""

    @abstractmethod
    def _build_sections(self, request: SynthesisRequest) -> list[PromptSection]:
        """Return ordered sections that form the user message body."""

    def render(self, request: SynthesisRequest) -> RenderedPrompt:
        """Render the template into a system and a user message."""
        system = self._system_instruction(request)
        user_body = join_sections(self._build_sections(request))

        return RenderedPrompt(
            messages=[
                LLMMessage(role="system", content=system),
                LLMMessage(role="user", content=user_body),
            ]
        )


def code_block(code: str, language: str = "java") -> str:
    """Wrap *code* in a fenced block."""
    return f"```{language}\n{code.rstrip()}\n```"


def join_sections(sections: list[PromptSection]) -> str:
    """Join prompt sections into a single user-message string."""
    blocks = [f"## {s.label}\n\n{s.content}" for s in sections if s.content]
    return "\n\n---\n\n".join(blocks)
