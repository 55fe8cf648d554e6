"""
Wizard step catalog — the nine fixed steps and the fields each one collects.

Field ids here are the keys users' answers are stored under in
StepResponse.responses. The catalog is descriptive: the data-flow engine
treats field paths as opaque and never rejects a field that is not listed.

Usage:
    from app.services.step_catalog import get_step, list_steps, validate_step_id
"""

from dataclasses import dataclass, field

from app.core.exceptions import ValidationError
from app.models.workflow import FIRST_STEP, LAST_STEP


@dataclass(frozen=True)
class StepField:
    id: str
    label: str
    required: bool = False


@dataclass(frozen=True)
class WizardStep:
    id: int
    title: str
    description: str
    fields: tuple[StepField, ...] = field(default_factory=tuple)

    @property
    def field_ids(self) -> list[str]:
        return [f.id for f in self.fields]

    @property
    def required_field_ids(self) -> list[str]:
        return [f.id for f in self.fields if f.required]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "fields": [
                {"id": f.id, "label": f.label, "required": f.required}
                for f in self.fields
            ],
        }


WIZARD_STEPS: tuple[WizardStep, ...] = (
    WizardStep(
        1, "Describe Your Idea",
        "Start with a simple description of your app idea, no matter how rough.",
        (
            StepField("appName", "App name"),
            StepField("appIdea", "Describe your app idea", required=True),
            StepField("inspiration", "What inspired this idea?"),
            StepField("problemSolving", "What problem does it solve?", required=True),
        ),
    ),
    WizardStep(
        2, "Define Core Purpose",
        "Clarify the main problem your app solves and its core value proposition.",
        (
            StepField("valueProp", "Main value proposition", required=True),
            StepField("uniqueness", "What makes it different", required=True),
            StepField("coreFeatures", "Three most important features", required=True),
        ),
    ),
    WizardStep(
        3, "High Level Technical Architecture",
        "Design the overall technical structure and system architecture.",
        (
            StepField("primaryAudience", "Primary target audience", required=True),
            StepField("userProblems", "Problems they currently face", required=True),
            StepField("userBehavior", "How they solve them today"),
            StepField("demographics", "Key demographics"),
        ),
    ),
    WizardStep(
        4, "Feature Stories & UX Flows",
        "Create user stories and UX flows for the app's features.",
        (
            StepField("mustHaveFeatures", "Must-have features (MVP)", required=True),
            StepField("niceToHaveFeatures", "Nice-to-have features"),
            StepField("advancedFeatures", "Advanced / future features"),
            StepField("integrations", "Third-party integrations"),
        ),
    ),
    WizardStep(
        5, "Design System & Style Guide",
        "Map the user journey, onboarding and navigation.",
        (
            StepField("userJourney", "Primary user journey", required=True),
            StepField("onboardingFlow", "Onboarding flow", required=True),
            StepField("navigationStructure", "Navigation structure", required=True),
            StepField("keyInteractions", "Key interactions"),
        ),
    ),
    WizardStep(
        6, "Screen States Specification",
        "Choose platforms and capture data and scalability needs.",
        (
            StepField("platformChoice", "Target platform", required=True),
            StepField("techPreferences", "Technology preferences"),
            StepField("dataRequirements", "Data requirements", required=True),
            StepField("scalabilityNeeds", "Expected scale", required=True),
            StepField("specialRequirements", "Special requirements"),
        ),
    ),
    WizardStep(
        7, "Comprehensive Technical Specification",
        "Decide how the app makes money and how it is priced.",
        (
            StepField("revenueModel", "Revenue model", required=True),
            StepField("pricingStrategy", "Pricing strategy"),
            StepField("valueJustification", "Value justification", required=True),
            StepField("competitorPricing", "Competitor pricing"),
        ),
    ),
    WizardStep(
        8, "Development Rules Integration",
        "Define the MVP scope, success metrics and launch plan.",
        (
            StepField("mvpScope", "MVP scope", required=True),
            StepField("successMetrics", "Success metrics", required=True),
            StepField("developmentTimeline", "Development timeline"),
            StepField("launchStrategy", "Launch strategy"),
            StepField("postLaunchPlans", "Post-launch plans"),
        ),
    ),
    WizardStep(
        9, "Implementation Planning",
        "Pick the deliverable format and plan the next steps.",
        (
            StepField("documentFormat", "Document format", required=True),
            StepField("nextSteps", "Next steps", required=True),
            StepField("additionalHelp", "Areas needing more help"),
            StepField("feedback", "Feedback on the process"),
        ),
    ),
)

_STEPS_BY_ID = {s.id: s for s in WIZARD_STEPS}


def list_steps() -> list[WizardStep]:
    return list(WIZARD_STEPS)


def total_steps() -> int:
    return len(WIZARD_STEPS)


def validate_step_id(step_id, field_name: str = "step_id") -> int:
    """Return ``step_id`` as int, raising ValidationError outside 1..9."""
    if isinstance(step_id, bool) or not isinstance(step_id, int):
        raise ValidationError(
            f"{field_name} must be an integer", details={field_name: step_id},
        )
    if not FIRST_STEP <= step_id <= LAST_STEP:
        raise ValidationError(
            f"{field_name} must be between {FIRST_STEP} and {LAST_STEP}",
            details={field_name: step_id},
        )
    return step_id


def get_step(step_id: int) -> WizardStep:
    return _STEPS_BY_ID[validate_step_id(step_id)]


def next_step_id(step_id: int) -> int | None:
    return step_id + 1 if step_id < LAST_STEP else None


def previous_step_id(step_id: int) -> int | None:
    return step_id - 1 if step_id > FIRST_STEP else None
