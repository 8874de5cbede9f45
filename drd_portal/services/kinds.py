"""
Submission kind profiles

A profile bundles everything that differs between IPR applications, research
contributions and grant applications: payload model, roster vocabulary,
editable fields, review category, application-number prefix and the
transition-table extension. The workflow engine itself is kind-agnostic.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

from pydantic import ValidationError as PydanticValidationError

from drd_portal.core.capabilities import ReviewCategory
from drd_portal.core.config import ApplicationNumberConfig
from drd_portal.core.exceptions import ValidationError
from drd_portal.models.submission import SubmissionKind
from drd_portal.schemas.payloads import SubmissionPayload, IprPayload, ResearchPayload, GrantPayload
from drd_portal.services.field_registry import FieldRegistry, build_registry
from drd_portal.services.transitions import TransitionTable, CORE_TRANSITIONS, IPR_GOVT_FILING_EXTENSION


IPR_ROLES = ("primary_inventor", "co_inventor")
RESEARCH_ROLES = ("first_author", "corresponding_author", "first_and_corresponding_author", "co_author")
GRANT_ROLES = ("pi", "co_pi")

ALL_ROLES = frozenset(IPR_ROLES + RESEARCH_ROLES + GRANT_ROLES)

RESEARCH_CATEGORY_BY_PUBLICATION = {
    "research_paper": ReviewCategory.research,
    "book": ReviewCategory.book,
    "book_chapter": ReviewCategory.book,
    "conference_paper": ReviewCategory.conference,
}


@dataclass(frozen=True)
class KindProfile:
    kind: SubmissionKind
    payload_model: Type[SubmissionPayload]
    roles: Tuple[str, ...]
    applicant_role: str
    fields: FieldRegistry
    transitions: TransitionTable
    category_for: Callable[[SubmissionPayload], ReviewCategory]
    prefix_for: Callable[[SubmissionPayload, ApplicationNumberConfig], Tuple[str, int]]

    def parse_payload(self, raw: Optional[Mapping[str, Any]]) -> SubmissionPayload:
        try:
            return self.payload_model.model_validate(dict(raw or {}))
        except PydanticValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(
                f"Invalid {self.kind.value} payload: {first.get('msg', str(e))}",
                field=location or None,
            )

    def dump_payload(self, payload: SubmissionPayload) -> Dict[str, Any]:
        return payload.model_dump(mode="json")

    def review_category(self, raw: Optional[Mapping[str, Any]]) -> ReviewCategory:
        return self.category_for(self.parse_payload(raw))

    def check_role(self, role: str) -> None:
        if role not in self.roles:
            raise ValidationError(
                f"Role '{role}' is not valid for {self.kind.value} submissions (expected one of: {', '.join(self.roles)})",
                field="role",
            )


def _ipr_prefix(payload: IprPayload, numbering: ApplicationNumberConfig) -> Tuple[str, int]:
    prefix = numbering.ipr_prefixes.get(payload.ipr_type or "", numbering.ipr_fallback_prefix)
    return prefix, numbering.sequence_width


def _research_prefix(payload: ResearchPayload, numbering: ApplicationNumberConfig) -> Tuple[str, int]:
    prefix = numbering.research_prefixes.get(payload.publication_type or "", numbering.research_fallback_prefix)
    return prefix, numbering.sequence_width


def _grant_prefix(payload: GrantPayload, numbering: ApplicationNumberConfig) -> Tuple[str, int]:
    return numbering.grant_prefix, numbering.grant_sequence_width


def _research_category(payload: ResearchPayload) -> ReviewCategory:
    return RESEARCH_CATEGORY_BY_PUBLICATION.get(payload.publication_type or "", ReviewCategory.research)


PROFILES: Dict[SubmissionKind, KindProfile] = {
    SubmissionKind.ipr: KindProfile(
        kind=SubmissionKind.ipr,
        payload_model=IprPayload,
        roles=IPR_ROLES,
        applicant_role="primary_inventor",
        fields=build_registry("ipr", IprPayload, (
            "title", "description", "remarks", "ipr_type", "filing_type", "project_type",
        )),
        transitions=CORE_TRANSITIONS.extend(IPR_GOVT_FILING_EXTENSION),
        category_for=lambda payload: ReviewCategory.ipr,
        prefix_for=_ipr_prefix,
    ),
    SubmissionKind.research: KindProfile(
        kind=SubmissionKind.research,
        payload_model=ResearchPayload,
        roles=RESEARCH_ROLES,
        applicant_role="first_author",
        fields=build_registry("research", ResearchPayload, (
            "title", "journal_name", "publication_type", "indexing_category", "doi", "publication_date",
        )),
        transitions=CORE_TRANSITIONS,
        category_for=_research_category,
        prefix_for=_research_prefix,
    ),
    SubmissionKind.grant: KindProfile(
        kind=SubmissionKind.grant,
        payload_model=GrantPayload,
        roles=GRANT_ROLES,
        applicant_role="pi",
        fields=build_registry("grant", GrantPayload, (
            "title", "funding_agency_name", "project_category", "project_type",
            "submitted_amount", "number_of_consortium_orgs",
        )),
        transitions=CORE_TRANSITIONS,
        category_for=lambda payload: ReviewCategory.grant,
        prefix_for=_grant_prefix,
    ),
}


def get_profile(kind: SubmissionKind) -> KindProfile:
    return PROFILES[SubmissionKind(kind)]
