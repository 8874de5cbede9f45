"""
Transition tables

The core table is shared by every submission kind. A kind may extend it with
extra events or extra source states for an existing event; extensions never
remove anything from the core.
"""
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple
import enum

from drd_portal.models.submission import SubmissionStatus as S


class WorkflowEvent(str, enum.Enum):
    submit = "submit"
    mentor_approve = "mentor_approve"
    start_review = "start_review"
    request_changes = "request_changes"
    resubmit = "resubmit"
    recommend = "recommend"
    approve = "approve"
    reject = "reject"
    credit = "credit"
    cancel = "cancel"
    # IPR government filing
    file_with_govt = "file_with_govt"
    record_govt_filing = "record_govt_filing"


class Authority(str, enum.Enum):
    """Who may fire an event"""
    applicant = "applicant"
    mentor = "mentor"
    reviewer = "reviewer"
    approver = "approver"
    rejector = "rejector"
    finance = "finance"


@dataclass(frozen=True)
class TransitionRule:
    event: WorkflowEvent
    sources: FrozenSet[S]
    target: S
    authority: Authority
    # Used instead of `target` when the mentor gate applies
    gated_target: Optional[S] = None

    def target_for(self, mentor_gate: bool) -> S:
        if mentor_gate and self.gated_target is not None:
            return self.gated_target
        return self.target


class TransitionTable:
    def __init__(self, rules: Iterable[TransitionRule]):
        self._rules: Dict[WorkflowEvent, TransitionRule] = {}
        for rule in rules:
            if rule.event in self._rules:
                raise ValueError(f"Duplicate rule for event '{rule.event.value}'")
            self._rules[rule.event] = rule

    def extend(self, rules: Iterable[TransitionRule]) -> "TransitionTable":
        """New table with extra events, or extra source states for existing ones"""
        merged = dict(self._rules)
        for rule in rules:
            existing = merged.get(rule.event)
            if existing is None:
                merged[rule.event] = rule
                continue
            if existing.target != rule.target or existing.authority != rule.authority:
                raise ValueError(f"Extension for '{rule.event.value}' must keep its target and authority")
            merged[rule.event] = replace(existing, sources=existing.sources | rule.sources)
        return TransitionTable(merged.values())

    def rule_for(self, event: WorkflowEvent) -> Optional[TransitionRule]:
        return self._rules.get(event)

    def allows(self, status: S, event: WorkflowEvent) -> bool:
        rule = self._rules.get(event)
        return rule is not None and status in rule.sources

    def events_from(self, status: S) -> List[WorkflowEvent]:
        return [event for event, rule in self._rules.items() if status in rule.sources]

    @property
    def events(self) -> List[WorkflowEvent]:
        return list(self._rules)

    def valid_pairs(self) -> Set[Tuple[S, WorkflowEvent]]:
        return {(source, event) for event, rule in self._rules.items() for source in rule.sources}

    def reachable_statuses(self) -> Set[S]:
        statuses: Set[S] = set()
        for rule in self._rules.values():
            statuses |= rule.sources
            statuses.add(rule.target)
            if rule.gated_target is not None:
                statuses.add(rule.gated_target)
        return statuses


REJECTABLE_STATUSES = frozenset({
    S.pending_mentor_approval,
    S.submitted,
    S.under_review,
    S.changes_required,
    S.resubmitted,
    S.recommended,
})


CORE_TRANSITIONS = TransitionTable([
    TransitionRule(WorkflowEvent.submit, frozenset({S.draft}), S.submitted, Authority.applicant,
                   gated_target=S.pending_mentor_approval),
    TransitionRule(WorkflowEvent.mentor_approve, frozenset({S.pending_mentor_approval}), S.submitted, Authority.mentor),
    TransitionRule(WorkflowEvent.start_review, frozenset({S.submitted, S.resubmitted}), S.under_review, Authority.reviewer),
    TransitionRule(WorkflowEvent.request_changes, frozenset({S.under_review}), S.changes_required, Authority.reviewer),
    TransitionRule(WorkflowEvent.resubmit, frozenset({S.changes_required}), S.resubmitted, Authority.applicant),
    TransitionRule(WorkflowEvent.recommend, frozenset({S.under_review}), S.recommended, Authority.reviewer),
    TransitionRule(WorkflowEvent.approve, frozenset({S.recommended, S.under_review}), S.approved, Authority.approver),
    TransitionRule(WorkflowEvent.reject, REJECTABLE_STATUSES, S.rejected, Authority.rejector),
    TransitionRule(WorkflowEvent.credit, frozenset({S.approved}), S.completed, Authority.finance),
    TransitionRule(WorkflowEvent.cancel, frozenset({S.draft}), S.cancelled, Authority.applicant),
])


IPR_GOVT_FILING_EXTENSION = [
    TransitionRule(WorkflowEvent.file_with_govt, frozenset({S.approved}), S.submitted_to_govt, Authority.approver),
    TransitionRule(WorkflowEvent.record_govt_filing, frozenset({S.submitted_to_govt}), S.govt_application_filed,
                   Authority.approver),
    TransitionRule(WorkflowEvent.credit, frozenset({S.submitted_to_govt, S.govt_application_filed}), S.completed,
                   Authority.finance),
]
