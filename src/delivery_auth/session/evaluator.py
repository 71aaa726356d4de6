"""
delivery_auth.session.evaluator

Pure auth-state evaluation.

Responsibilities:
- Map (cached user record, role, selected community) to exactly one `AuthState`.
- Produce the canonical redirect path for that state.

The policy is an ordered table of rules; the first rule whose predicate holds wins.
Order matters: community selection is asked for before role selection, and profile
completion is checked last. No I/O, no logging, no exceptions.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from delivery_auth.session.models import LOGIN_PATH, AuthState, Role, UserRecord

SELECT_COMMUNITY_PATH = "/select-community"
ROLE_SELECT_PATH = "/role-select"

HOME_PATHS: dict[str, str] = {
    Role.customer: "/home/customer",
    Role.admin: "/home/admin",
    Role.delivery: "/home/delivery",
    "delivery_partner": "/home/delivery",
}
DEFAULT_HOME_PATH = HOME_PATHS[Role.customer]

# Stringified nulls left behind by older clients that stored `String(null)`.
_NULLISH_ROLES = frozenset({"undefined", "null"})


@dataclass(frozen=True, slots=True)
class EvaluationInput:
    user_record: UserRecord | None
    role: str | None
    selected_community: str | None


@dataclass(frozen=True, slots=True)
class Evaluation:
    state: AuthState
    redirect_to: str


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    applies: Callable[[EvaluationInput], bool]
    state: AuthState
    redirect_to: str


def usable_role(role: object) -> str | None:
    if role is None:
        return None
    value = str(role).strip()
    if not value or value in _NULLISH_ROLES:
        return None
    return value


def home_path(role: str | None) -> str:
    # Unknown roles land on the customer home rather than failing closed.
    if role is None:
        return DEFAULT_HOME_PATH
    return HOME_PATHS.get(role, DEFAULT_HOME_PATH)


def _no_record(inputs: EvaluationInput) -> bool:
    return inputs.user_record is None


def _no_community(inputs: EvaluationInput) -> bool:
    record = inputs.user_record
    return not (inputs.selected_community or (record is not None and record.community_id))


def _no_role(inputs: EvaluationInput) -> bool:
    return usable_role(inputs.role) is None


def _profile_incomplete(inputs: EvaluationInput) -> bool:
    record = inputs.user_record
    profile = record.profile if record is not None else None
    return profile is None or not profile.is_complete


RULES: tuple[Rule, ...] = (
    Rule("no_record", _no_record, AuthState.unauthenticated, LOGIN_PATH),
    Rule(
        "no_community",
        _no_community,
        AuthState.needs_community_selection,
        SELECT_COMMUNITY_PATH,
    ),
    Rule("no_role", _no_role, AuthState.needs_role_selection, ROLE_SELECT_PATH),
    # Profile completion shares the community screen (one combined "finish setup" flow),
    # but stays a distinct state.
    Rule(
        "profile_incomplete",
        _profile_incomplete,
        AuthState.profile_incomplete,
        SELECT_COMMUNITY_PATH,
    ),
)


def evaluate(
    user_record: UserRecord | None,
    role: str | None,
    selected_community: str | None,
    *,
    rules: tuple[Rule, ...] = RULES,
) -> Evaluation:
    inputs = EvaluationInput(
        user_record=user_record,
        role=role,
        selected_community=selected_community,
    )
    for rule in rules:
        if rule.applies(inputs):
            return Evaluation(state=rule.state, redirect_to=rule.redirect_to)
    return Evaluation(state=AuthState.authenticated, redirect_to=home_path(usable_role(role)))


def evaluate_record(user_record: UserRecord | None) -> Evaluation:
    """
    Evaluate a record on its own (no denormalized cache values), as done when
    labelling a freshly written session.
    """

    if user_record is None:
        return evaluate(None, None, None)
    return evaluate(user_record, user_record.role, user_record.community_id)


# --- Module Notes -----------------------------------------------------------
# Extending the policy means inserting a Rule at the right position in RULES; tests
# construct inputs directly and need no fakes.
