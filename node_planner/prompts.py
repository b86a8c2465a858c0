"""Prompt text used by the recommendations endpoint."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from node_planner.questionnaire import NS_NODE_SERVICES, QuestionnaireAnswers, format_location

RESPONSE_SCHEMA = """{
  "recommendations": [
    {
      "serviceId": "service_id",
      "serviceName": "Service Name",
      "estimatedInitialCost": number,
      "estimatedMonthlyCost": number,
      "steps": ["step 1", "step 2", ...],
      "specificRecommendations": "Detailed recommendations based on web search",
      "sources": ["source 1", "source 2", ...]
    }
  ],
  "totalEstimatedInitialCost": number,
  "totalEstimatedMonthlyCost": number,
  "notes": "Overall notes and considerations",
  "totalEstimatedCostOverBudget": number | null,
  "overBudgetReason": string | null
}"""


def _money(value: Optional[float]) -> str:
    if value is None:
        return "$0"
    if float(value).is_integer():
        return f"${int(value)}"
    return f"${value}"


def _or_not_specified(value: Any) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return "Not specified"
    return str(value)


def format_services(services: Iterable[dict[str, Any]]) -> str:
    return "\n".join(f"- {s['label']} ({s['id']}): {s['description']}" for s in services)


def build_recommendations_prompt(
    answers: QuestionnaireAnswers,
    services: Iterable[dict[str, Any]] = NS_NODE_SERVICES,
) -> str:
    location = format_location(answers)
    used_items = "Yes" if answers.used_items is None else answers.used_items.capitalize()

    return f"""You are a helpful assistant that provides recommendations for setting up services in a specific geographic location.

User's location: {location}
Initial budget: {_money(answers.initial_budget_usd)}
Target monthly cost: {_money(answers.monthly_target_usd)}
Household size: {_or_not_specified(answers.household_size)}
Values to foster: {_or_not_specified(answers.values)}
Priority: {_or_not_specified(answers.priority)}
Willing to use used items: {used_items}

Available services to recommend:
{format_services(services)}

Please search the internet for current prices, availability, and options for these services in {location}. Provide detailed recommendations in JSON format with the following structure:
{RESPONSE_SCHEMA}

For the real estate criterion, if there are no properties available for purchase with the user's initial or monthly budget, search for properties that are available for rent with the user's budget. If you can find specific properties, include the URL to the specific listing in the "sources" field.

If the user is willing to use used items, make sure to search websites like Craigslist, Facebook Marketplace, and other similar websites you are able to access to find used items. If you can find specific items, include the URL to the specific listing in the "sources" field.

Make sure to:
1. Search for real, current prices and options in the specified location
2. Provide specific recommendations based on the user's budget and preferences
3. Include actual service providers, stores, or resources available in that area
4. Consider the user's values and priorities when making recommendations
5. Try your best to make the total costs align with the user's budget constraints. If it is not possible, fill the "totalEstimatedCostOverBudget" field with the amount of the overage and the "overBudgetReason" field with the reason why it is not possible to align the costs with the user's budget constraints.

Please output *only* the JSON, no markdown fences. Thank you."""
