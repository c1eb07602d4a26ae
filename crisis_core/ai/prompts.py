# =============================================================================
# crisis_core/ai/prompts.py
# Prompt text for the AI crisis team
# =============================================================================

from __future__ import annotations
import json
from typing import List

from crisis_core.models import Coordinates, CrisisEvent, FamilyCircle, events_to_dicts

JSON_ONLY = (
    "The final output MUST be a single JSON object that strictly adheres to the provided schema. "
    "Do not include any explanatory text, markdown formatting, or any content outside the JSON structure."
)

PLAN_SYSTEM_PROMPT = (
    "You are a multi-agent AI crisis management system for a family. "
    "Your goal is to provide a clear, actionable, and reassuring plan."
)

CHECKIN_SYSTEM_PROMPT = (
    "You are an SMS parsing service for an emergency response app. Your job is to analyze an "
    "incoming SMS message and determine the person's status and a summary of their situation."
)

ROUTE_SYSTEM_PROMPT = (
    "Act as a crisis route intelligence analyst. Your task is to analyze the viability of a "
    "travel route for a specific person during an active crisis."
)


def _dump(value) -> str:
    return json.dumps(value, indent=2)


def build_plan_prompt(circle: FamilyCircle, events: List[CrisisEvent], location: Coordinates) -> str:
    return f"""
Analyze the provided family and crisis data to generate a comprehensive response.

**AGENT ROLES:**
1.  **Triage Agent:** Prioritize family members based on their status, location relative to hazards, and last message.
2.  **Logistics Agent:** Determine safe meetup locations, analyze routes for each member, and recommend supplies. Routes must be analyzed individually considering the member's start location. A viable route is one that is likely clear of immediate, known crisis-related blockages.
3.  **Medical Agent:** Assess potential medical needs based on reported statuses like 'INJURED' and provide simple, clear instructions.
4.  **Prediction Agent:** Forecast the crisis's evolution over the next few hours, including potential secondary hazards.
5.  **Synthesis Agent:** Combine the outputs of all agents into a single, cohesive plan with clear, prioritized actions and a reassuring message.

**INPUT DATA:**
- **Current User Location (for context):** {json.dumps(location.to_dict())}
- **Family Circle Information:** {_dump(circle.to_dict())}
- **Live Crisis Events:** {_dump(events_to_dicts(events))}

**INSTRUCTIONS:**
- Base your entire analysis on the provided data.
- Be realistic. If a route passes through a crisis epicenter, it is likely not viable. Mention specific hazards.
- Meetup points should be logical public places (parks, libraries, etc.) that are away from the immediate crisis zones. Propose 2-3 ranked options.
- urgency_level must be exactly one of: IMMEDIATE, URGENT, MODERATE, LOW.
- {JSON_ONLY}
""".strip()


def build_checkin_prompt(message: str) -> str:
    return f"""
**Instructions:**
1. Read the message carefully to understand the sender's condition.
2. Determine the status. It MUST be one of the following exact values: 'SAFE', 'HELP', or 'INJURED'.
    - 'SAFE': The person is okay, not in immediate danger.
    - 'HELP': The person needs assistance but is not explicitly stating an injury (e.g., stuck, needs rescue).
    - 'INJURED': The person explicitly mentions being hurt, wounded, or having a medical emergency.
3. Create a brief, one-sentence summary of their message.

**SMS Message to Analyze:**
"{message}"

{JSON_ONLY}
""".strip()


def build_route_prompt(
    member_name: str,
    start: Coordinates,
    end: Coordinates,
    events: List[CrisisEvent],
) -> str:
    return f"""
**Crisis Context:**
{_dump(events_to_dicts(events))}

**Route Details:**
- Person: {member_name}
- Start Location: {json.dumps(start.to_dict())}
- Destination: {json.dumps(end.to_dict())}

Based on the crisis events (e.g., earthquake location, severity), infer potential road closures, traffic congestion, and specific hazards. Provide a realistic assessment of the route's viability.

{JSON_ONLY}
""".strip()
