"""Intake questionnaire and the catalog of services the model may recommend."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

QUESTIONS: list[dict[str, Any]] = [
    {
        "id": "location_country",
        "label": "Country",
        "type": "text",
        "required": True,
        "placeholder": "e.g., USA",
    },
    {
        "id": "location_state",
        "label": "State",
        "type": "text",
        "required": True,
        "placeholder": "e.g., TX",
    },
    {
        "id": "location_city",
        "label": "City",
        "type": "text",
        "required": True,
        "placeholder": "e.g., Austin",
    },
    {
        "id": "initial_budget_usd",
        "label": "Up-front budget (USD)",
        "type": "number",
        "required": True,
        "min": 0,
        "placeholder": "e.g., 25000",
        "help_text": "How much you can spend at the start (equipment, deposits, setup costs, etc.)",
    },
    {
        "id": "monthly_target_usd",
        "label": "Target monthly cost (USD)",
        "type": "number",
        "required": True,
        "min": 0,
        "placeholder": "e.g., 4500",
    },
    {
        "id": "values",
        "label": "Values you want to foster",
        "type": "textarea",
        "required": True,
        "placeholder": "e.g., health, quiet focus, sustainability, family-friendly, community...",
        "help_text": "These will later guide recommendations and trade-offs.",
    },
    {
        "id": "household_size",
        "label": "Expected number of people living there",
        "type": "number",
        "required": True,
        "min": 1,
        "placeholder": "e.g., 3",
    },
    {
        "id": "priority",
        "label": "Top priority",
        "type": "select",
        "required": False,
        "options": [
            {"label": "Minimize cost", "value": "min_cost"},
            {"label": "Maximize comfort", "value": "max_comfort"},
            {"label": "Maximize convenience", "value": "max_convenience"},
        ],
    },
    {
        "id": "used_items",
        "label": "Are you willing to use used items?",
        "type": "radio",
        "required": True,
        "options": [
            {"label": "Yes, I am willing to use used items", "value": "yes"},
            {"label": "No, I am not willing to use used items", "value": "no"},
        ],
    },
]

NS_NODE_SERVICES: list[dict[str, Any]] = [
    {
        "id": "meal_prep",
        "label": "Meal Prep",
        "description": "Prepare meals at home for a healthy lifestyle",
        "steps": ["Buy ingredients", "Prepare meals", "Store meals"],
    },
    {
        "id": "home_gym",
        "label": "Home Gym",
        "description": "Build a home gym for fitness and wellness",
        "steps": ["Buy equipment", "Set up space", "Train regularly"],
    },
    {
        "id": "mixed_use_real_estate",
        "label": "Mixed-Use Real Estate",
        "description": (
            "Buy or rent a residential or mixed-use property for living and working, "
            "depending on cost and the user's preferences"
        ),
        "steps": [
            "Find a property",
            "Buy or rent",
            "Set up living and working space",
            "Install utilities and high-speed high-quality Internet",
        ],
    },
    {
        "id": "cleaning_services",
        "label": "Cleaning Services",
        "description": (
            "Hire a cleaning service or a janitor for the whole establishment, depending on the "
            "amount of cleaning expected for the number of people and the size of the place"
        ),
        "steps": ["Hire a cleaning service or a janitor", "Schedule cleaning", "Maintain cleanliness"],
    },
]


class QuestionnaireAnswers(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    location_country: str = Field(..., min_length=1)
    location_state: str = Field(..., min_length=1)
    location_city: str = Field(..., min_length=1)
    initial_budget_usd: Optional[float] = Field(None, ge=0)
    monthly_target_usd: Optional[float] = Field(None, ge=0)
    values: Optional[str] = None
    household_size: Optional[int] = Field(None, ge=1)
    priority: Optional[Literal["min_cost", "max_comfort", "max_convenience"]] = None
    used_items: Optional[Literal["yes", "no"]] = None

    @field_validator(
        "initial_budget_usd",
        "monthly_target_usd",
        "household_size",
        "values",
        "priority",
        "used_items",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # Form posts send "" for untouched optional inputs.
        if isinstance(value, str) and not value.strip():
            return None
        return value


def format_location(answers: QuestionnaireAnswers) -> str:
    parts = [answers.location_city, answers.location_state, answers.location_country]
    return ", ".join(part for part in parts if part)
