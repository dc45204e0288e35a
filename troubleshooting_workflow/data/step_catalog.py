from typing import Dict, List, Sequence, Set

from troubleshooting_workflow.domain.models import StepDefinition, StepKind, ValidationRule
from troubleshooting_workflow.exceptions import StepNotFoundError
from troubleshooting_workflow.state.models import TroubleshootingContext, WorkflowStep

# ==============================================================================
# VALIDATION PREDICATES
# ==============================================================================

def has_problem_description(context: TroubleshootingContext) -> bool:
    return bool(context.problem_description.strip())


def has_solutions(context: TroubleshootingContext) -> bool:
    return len(context.solutions) > 0


def has_selected_solution(context: TroubleshootingContext) -> bool:
    return context.selected_solution_id is not None


# ==============================================================================
# STEP KINDS (resolved once, at catalog construction)
# ==============================================================================

STEP_KIND_BY_ID: Dict[str, StepKind] = {
    "analyze": StepKind.ANALYSIS,
    "solutions": StepKind.REVIEW,
    "execute": StepKind.EXECUTION,
    "collaborate": StepKind.COLLABORATION,
    "feedback": StepKind.FEEDBACK,
}


def _kind(step_id: str) -> StepKind:
    return STEP_KIND_BY_ID.get(step_id, StepKind.GENERIC)


# ==============================================================================
# STEP DEFINITIONS
# ==============================================================================

# --- STEP 1: ANALYSIS ---
analyze = StepDefinition(
    id="analyze",
    title="Problem Analysis",
    description="AI analyzes your issue and generates tailored solutions",
    category="analysis",
    estimated_time="30s",
    validation_rules=[
        ValidationRule(
            id="problem-description",
            description="Problem description must be provided",
            predicate=has_problem_description,
            error_message="Please provide a detailed problem description",
        )
    ],
    kind=_kind("analyze"),
)

# --- STEP 2: REVIEW SOLUTIONS ---
solutions = StepDefinition(
    id="solutions",
    title="Review Solutions",
    description="Examine AI-generated solutions and community recommendations",
    category="solution",
    estimated_time="2-5 min",
    requirements=["analyze"],
    validation_rules=[
        ValidationRule(
            id="solutions-available",
            description="At least one solution must be available",
            predicate=has_solutions,
            error_message="No solutions available. Please run analysis first.",
        )
    ],
    kind=_kind("solutions"),
)

# --- STEP 3: EXECUTE ---
execute = StepDefinition(
    id="execute",
    title="Execute Steps",
    description="Follow step-by-step instructions to resolve your issue",
    category="execution",
    estimated_time="5-15 min",
    requirements=["analyze", "solutions"],
    validation_rules=[
        ValidationRule(
            id="solution-selected",
            description="A solution must be selected for execution",
            predicate=has_selected_solution,
            error_message="Please select a solution to execute",
        )
    ],
    kind=_kind("execute"),
)

# --- STEP 4: COLLABORATE (optional) ---
collaborate = StepDefinition(
    id="collaborate",
    title="Team Collaboration",
    description="Share with team members and get additional input",
    category="collaboration",
    optional=True,
    estimated_time="2-10 min",
    kind=_kind("collaborate"),
)

# --- STEP 5: FEEDBACK ---
feedback = StepDefinition(
    id="feedback",
    title="Provide Feedback",
    description="Rate solutions and help improve the AI recommendations",
    category="feedback",
    estimated_time="1-2 min",
    requirements=["execute"],
    kind=_kind("feedback"),
)


DEFAULT_STEP_DEFINITIONS: List[StepDefinition] = [
    analyze,
    solutions,
    execute,
    collaborate,
    feedback,
]


def index_definitions(definitions: Sequence[StepDefinition]) -> Dict[str, StepDefinition]:
    """Index definitions by id for O(1) lookup."""
    return {d.id: d for d in definitions}


def _required_closure(step_id: str, index: Dict[str, StepDefinition]) -> Set[str]:
    """All step ids the given step transitively requires."""
    seen: Set[str] = set()
    pending = list(index[step_id].requirements)
    while pending:
        req_id = pending.pop()
        if req_id in seen or req_id not in index:
            continue
        seen.add(req_id)
        pending.extend(index[req_id].requirements)
    return seen


def build_initial_steps(
    entry_step_id: str,
    definitions: Sequence[StepDefinition] = DEFAULT_STEP_DEFINITIONS,
) -> List[WorkflowStep]:
    """
    Seed the step list for a session that starts on `entry_step_id`.

    Steps ordered before the entry step are completed, the entry step is
    active and the rest are pending. Anything the entry step (transitively)
    requires is completed as well, wherever it sits in the order.
    This only seeds statuses; requirements are enforced by the engine.
    """
    index = index_definitions(definitions)
    if entry_step_id not in index:
        raise StepNotFoundError(entry_step_id)

    required = _required_closure(entry_step_id, index)
    entry_position = [d.id for d in definitions].index(entry_step_id)

    steps = []
    for position, definition in enumerate(definitions):
        if definition.id == entry_step_id:
            status = "active"
        elif position < entry_position or definition.id in required:
            status = "completed"
        else:
            status = "pending"

        steps.append(
            WorkflowStep(
                id=definition.id,
                title=definition.title,
                description=definition.description,
                status=status,
                optional=definition.optional,
                category=definition.category,
                estimated_time=definition.estimated_time,
                requirements=list(definition.requirements),
                icon=definition.kind.icon,
            )
        )
    return steps
