"""Pydantic v2 models for the script protocol wire messages."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

from kitbridge.protocol.semantic_id import generate_semantic_id


class Choice(BaseModel):
    """One selectable option of an ``arg`` prompt."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(description="Label shown to the user")
    value: str = Field(description="Value submitted when chosen")
    description: str | None = Field(
        default=None,
        description="Secondary text shown under the label",
    )
    semantic_id: str | None = Field(
        default=None,
        alias="semanticId",
        description="Stable id in the form choice:{index}:{slug}",
    )

    def with_semantic_id(self, index: int) -> Choice:
        """Return a copy carrying the semantic id for position *index*."""
        return self.model_copy(
            update={"semantic_id": generate_semantic_id("choice", index, self.value)}
        )


class _MessageBase(BaseModel):
    """Common config shared by every protocol message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Arg(_MessageBase):
    """Child asks the host for a value picked from *choices*."""

    type: Literal["arg"] = "arg"
    id: str = Field(description="Prompt instance id")
    placeholder: str = Field(description="Prompt text")
    choices: list[Choice] = Field(default_factory=list)


class Div(_MessageBase):
    """Child asks the host to show an HTML panel and wait for acknowledgment."""

    type: Literal["div"] = "div"
    id: str = Field(description="Prompt instance id")
    html: str = Field(description="Panel body")
    tailwind: str | None = Field(
        default=None,
        description="Tailwind classes for the content container",
    )


class Submit(_MessageBase):
    """Host answers a prompt; an absent value means the prompt was dismissed."""

    type: Literal["submit"] = "submit"
    id: str = Field(description="Id of the prompt being answered")
    value: str | None = None


class Exit(_MessageBase):
    """Either side ends the session."""

    type: Literal["exit"] = "exit"
    code: int | None = None
    message: str | None = None


class Hide(_MessageBase):
    """Child asks the host to hide its window without ending the session."""

    type: Literal["hide"] = "hide"


class Browse(_MessageBase):
    """Child asks the host to open *url* externally."""

    type: Literal["browse"] = "browse"
    url: str


#: Wire ``type`` values this host understands.
KNOWN_TYPES = frozenset({"arg", "div", "submit", "exit", "hide", "browse"})


def _message_discriminator(v: Any) -> str:
    """Extract the discriminator value from raw data or a model instance."""
    if isinstance(v, dict):
        return str(v.get("type", ""))
    return str(getattr(v, "type", ""))


Message = Annotated[
    Annotated[Arg, Tag("arg")]
    | Annotated[Div, Tag("div")]
    | Annotated[Submit, Tag("submit")]
    | Annotated[Exit, Tag("exit")]
    | Annotated[Hide, Tag("hide")]
    | Annotated[Browse, Tag("browse")],
    Discriminator(_message_discriminator),
]
"""Discriminated union of all protocol messages."""
