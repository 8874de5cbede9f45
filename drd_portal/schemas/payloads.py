"""
Kind-specific submission payloads

Drafts may be partial, so every field is optional here; `missing_for_submit`
reports what still has to be filled in before the first submit. File fields
are opaque path strings owned by the attachment store.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal, ClassVar, Tuple
from datetime import date
from decimal import Decimal


IprType = Literal["patent", "copyright", "trademark", "design"]
FilingType = Literal["provisional", "complete"]
IprProjectType = Literal["phd", "pg_project", "ug_project", "faculty_research", "industry_collaboration", "any_other"]
PublicationType = Literal["research_paper", "book", "book_chapter", "conference_paper"]
GrantProjectCategory = Literal["govt", "non_govt", "industry"]
GrantProjectType = Literal["indian", "international"]


class SubmissionPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    required_on_submit: ClassVar[Tuple[str, ...]] = ()

    def missing_for_submit(self) -> List[str]:
        missing = []
        for name in self.required_on_submit:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def policy_key(self) -> Tuple[str, str]:
        raise NotImplementedError

    @property
    def is_international(self) -> bool:
        return False

    @property
    def consortium_member_count(self) -> int:
        return 0


class IprPayload(SubmissionPayload):
    required_on_submit: ClassVar[Tuple[str, ...]] = ("ipr_type", "filing_type", "project_type")

    ipr_type: Optional[IprType] = None
    filing_type: Optional[FilingType] = None
    project_type: Optional[IprProjectType] = None
    description: Optional[str] = None
    remarks: Optional[str] = None
    annexure_file_path: Optional[str] = None
    supporting_doc_paths: List[str] = Field(default_factory=list)
    sdg_goals: List[str] = Field(default_factory=list)

    def policy_key(self) -> Tuple[str, str]:
        return ("ipr", self.ipr_type or "default")


class ResearchPayload(SubmissionPayload):
    required_on_submit: ClassVar[Tuple[str, ...]] = ("publication_type", "journal_name")

    publication_type: Optional[PublicationType] = None
    # Quartile for journals, sub-type for conferences; selects the policy variant
    indexing_category: Optional[str] = None
    journal_name: Optional[str] = None
    doi: Optional[str] = None
    publication_date: Optional[date] = None
    manuscript_file_path: Optional[str] = None

    def policy_key(self) -> Tuple[str, str]:
        return (self.publication_type or "research_paper", self.indexing_category or "default")


class GrantPayload(SubmissionPayload):
    required_on_submit: ClassVar[Tuple[str, ...]] = (
        "project_category", "project_type", "funding_agency_name",
    )

    project_category: Optional[GrantProjectCategory] = None
    project_type: Optional[GrantProjectType] = None
    funding_agency_name: Optional[str] = None
    submitted_amount: Optional[Decimal] = Field(default=None, ge=0)
    number_of_consortium_orgs: int = Field(default=0, ge=0)
    sdg_goals: List[str] = Field(default_factory=list)
    proposal_file_path: Optional[str] = None

    def policy_key(self) -> Tuple[str, str]:
        return (self.project_category or "govt", self.project_type or "indian")

    @property
    def is_international(self) -> bool:
        return self.project_type == "international"

    @property
    def consortium_member_count(self) -> int:
        return self.number_of_consortium_orgs or 0
