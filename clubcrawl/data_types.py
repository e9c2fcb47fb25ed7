"""Core data types for the club crawler.

This module contains the values that flow between the fetcher, the
extractor, the stores and the orchestrator:

- LinkId: the club code identifying one detail page (the resume key).
- Record: one organization plus associated-person pairing.
- FetchedPage: a snapshot of a finished navigation.
- FetchSuccess / FatalRedirect / TransientFailure: the tagged result of a
  fetch, matched exhaustively by the orchestrator.
- LinkState / RunStatus: per-link and per-run state machines.
- RunReport: the outcome of one run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from clubcrawl.common.exceptions import FatalRedirectError, TransientException
from clubcrawl.common.lxml_page_element import LxmlPageElement

LinkId = str

ORGANIZATION_NAME_SENTINEL = "Organization name not available"
PERSON_NAME_SENTINEL = "Name not available"
PERSON_ROLE_SENTINEL = "Role not available"


def _blank_to(sentinel: str, value: str | None) -> str:
    if value is None:
        return sentinel
    value = " ".join(value.split())
    return value or sentinel


class Record(SQLModel):
    """One (organization, associated-person) pairing.

    Every Record produced from the same club page carries identical
    organization fields and team_count; only the person fields vary.

    Blank or missing name/role values are replaced by sentinels on
    validation, so a Record never holds an empty string for them.
    """

    link_id: str = Field(index=True)
    organization_name: str = ORGANIZATION_NAME_SENTINEL
    organization_email: str | None = None
    organization_phone: str | None = None
    organization_province: str | None = None
    person_name: str = PERSON_NAME_SENTINEL
    person_role: str = PERSON_ROLE_SENTINEL
    team_count: int = Field(default=0, ge=0)

    @field_validator("organization_name", mode="before")
    @classmethod
    def _organization_name_sentinel(cls, v: str | None) -> str:
        return _blank_to(ORGANIZATION_NAME_SENTINEL, v)

    @field_validator("person_name", mode="before")
    @classmethod
    def _person_name_sentinel(cls, v: str | None) -> str:
        return _blank_to(PERSON_NAME_SENTINEL, v)

    @field_validator("person_role", mode="before")
    @classmethod
    def _person_role_sentinel(cls, v: str | None) -> str:
        return _blank_to(PERSON_ROLE_SENTINEL, v)


@dataclass
class FetchedPage:
    """Snapshot of a navigation result.

    Attributes:
        url: The URL that was requested.
        final_url: The URL the navigation ended on.
        status_code: HTTP status of the final response.
        text: Serialized DOM (browser) or response body (HTTP).
        headers: Headers of the final response.
    """

    url: str
    final_url: str
    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    def page_element(self) -> LxmlPageElement:
        """Parse the snapshot into a queryable PageElement."""
        return LxmlPageElement.from_html(self.text, self.final_url)


@dataclass(frozen=True)
class FetchSuccess:
    page: FetchedPage


@dataclass(frozen=True)
class FatalRedirect:
    """The navigation was intercepted by the login redirect.

    Attributes:
        url: The URL whose navigation was redirected.
        target_url: The redirect target (Location header or final URL).
        status_code: The 3xx status, or None when detected from the final URL.
    """

    url: str
    target_url: str
    status_code: int | None = None

    def to_exception(self) -> FatalRedirectError:
        return FatalRedirectError(self.url, self.target_url, self.status_code)


@dataclass(frozen=True)
class TransientFailure:
    url: str
    error: TransientException


FetchOutcome = Union[FetchSuccess, FatalRedirect, TransientFailure]


class LinkState(str, Enum):
    """Lifecycle of one discovered link within a run."""

    PENDING = "pending"
    SKIPPED = "skipped"
    FETCHING = "fetching"
    SUCCESS = "success"
    EXTRACTING = "extracting"
    PERSISTED = "persisted"
    FATAL_REDIRECT = "fatal_redirect"
    ABORTED = "aborted"
    TRANSIENT_ERROR = "transient_error"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Lifecycle of a whole run.

    DISCOVERING and ITERATING are the in-flight states; a finished run is
    COMPLETED (every link visited), ABORTED (fatal redirect) or STOPPED
    (external stop request).
    """

    DISCOVERING = "discovering"
    ITERATING = "iterating"
    COMPLETED = "completed"
    ABORTED = "aborted"
    STOPPED = "stopped"


@dataclass(frozen=True)
class LinkFailure:
    link_id: LinkId
    url: str
    error: Exception


@dataclass
class RunReport:
    """Outcome of one orchestrator run.

    Attributes:
        status: Terminal RunStatus.
        discovered: Number of LinkIds discovery produced (duplicates included).
        skipped: Links skipped because they were already processed.
        persisted: Links whose records were committed during this run.
        records_written: Total records committed during this run.
        failures: Links that failed transiently or during extraction.
        abort_error: The fatal redirect that aborted the run, if any.
        remaining: Distinct discovered LinkIds still not processed.
    """

    status: RunStatus
    discovered: int = 0
    skipped: int = 0
    persisted: int = 0
    records_written: int = 0
    failures: list[LinkFailure] = field(default_factory=list)
    abort_error: FatalRedirectError | None = None
    remaining: int = 0

    @property
    def fully_processed(self) -> bool:
        """True when every discovered link ended skipped or persisted."""
        return self.status == RunStatus.COMPLETED and self.remaining == 0
