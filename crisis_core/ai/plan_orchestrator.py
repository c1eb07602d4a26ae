# =============================================================================
# crisis_core/ai/plan_orchestrator.py
# Single-call AI operations: multi-agent plan, SMS check-in parse, route check
# =============================================================================
"""
AI Plan Orchestrator.

Each operation is one chat-completions call with a JSON schema response
format, validated against the pydantic contracts in ``crisis_core.models.plan``.

Contract for ``generate`` and ``parse_checkin``:
- offline: raise OfflineError before touching the client
- provider call raises: AIGenerationError (an unreachable provider also
  signals the monitor offline)
- payload not JSON / fails validation: InvalidResponseError
- never retries; the caller decides whether to re-invoke

``assess_route`` is advisory and returns a conservative non-viable route on
any failure instead of raising.
"""

from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Type, TypeVar

import openai
from pydantic import BaseModel, ValidationError

from crisis_core.config.settings import AISettings
from crisis_core.errors import AIGenerationError, InvalidResponseError, OfflineError
from crisis_core.logging import get_logger, LogContext
from crisis_core.models import (
    CheckinResult,
    Coordinates,
    CrisisEvent,
    FamilyCircle,
    MultiAgentPlan,
    NON_VIABLE_ROUTE,
    RouteInfo,
)
from crisis_core.offline import ConnectivityMonitor

from .prompts import (
    CHECKIN_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT,
    ROUTE_SYSTEM_PROMPT,
    build_checkin_prompt,
    build_plan_prompt,
    build_route_prompt,
)

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

PLAN_FAILURE_MESSAGE = (
    "The AI crisis team could not generate a plan. The situation may be complex or there "
    "was a network issue. Please try again in a moment."
)
CHECKIN_FAILURE_MESSAGE = (
    "The AI could not understand the message. Please try a clearer message or update the "
    "status manually."
)


def response_format(name: str, model: Type[BaseModel]) -> Dict[str, Any]:
    """OpenAI ``response_format`` for a pydantic contract."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": name,
            "schema": model.model_json_schema(by_alias=True),
        },
    }


class AIPlanOrchestrator:
    """
    Usage:
        orchestrator = AIPlanOrchestrator(monitor, settings=settings.ai)
        plan = orchestrator.generate(circle, events, location)
        result = orchestrator.parse_checkin("I fell and hurt my leg")
    """

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        client: Optional[Any] = None,
        settings: Optional[AISettings] = None,
    ):
        self.monitor = monitor
        self.settings = settings or AISettings()
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.settings.api_key:
                raise AIGenerationError(
                    "AI service is not configured. Set OPENAI_API_KEY to enable AI features.",
                    recoverable=False,
                )
            self._client = openai.OpenAI(api_key=self.settings.api_key, timeout=self.settings.timeout)
        return self._client

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def generate(
        self,
        circle: FamilyCircle,
        crisis_events: List[CrisisEvent],
        location: Coordinates,
    ) -> MultiAgentPlan:
        self._require_online("AI plan generation")
        with LogContext(logger, "Generating multi-agent plan"):
            content = self._complete(
                operation="generate_plan",
                model=self.settings.model,
                system=PLAN_SYSTEM_PROMPT,
                prompt=build_plan_prompt(circle, crisis_events, location),
                schema_name="multi_agent_plan",
                contract=MultiAgentPlan,
                failure_message=PLAN_FAILURE_MESSAGE,
            )
            return self._validate(MultiAgentPlan, content, "generate_plan", PLAN_FAILURE_MESSAGE)

    def parse_checkin(self, message: str) -> CheckinResult:
        self._require_online("SMS check-in parsing")
        if not message or not message.strip():
            raise InvalidResponseError("Please enter a message to analyze.", operation="parse_checkin")
        content = self._complete(
            operation="parse_checkin",
            model=self.settings.checkin_model,
            system=CHECKIN_SYSTEM_PROMPT,
            prompt=build_checkin_prompt(message.strip()),
            schema_name="sms_checkin",
            contract=CheckinResult,
            failure_message=CHECKIN_FAILURE_MESSAGE,
        )
        return self._validate(CheckinResult, content, "parse_checkin", CHECKIN_FAILURE_MESSAGE)

    def assess_route(
        self,
        member_name: str,
        start: Coordinates,
        end: Coordinates,
        crisis_events: List[CrisisEvent],
    ) -> RouteInfo:
        try:
            self._require_online("Route intelligence")
            content = self._complete(
                operation="assess_route",
                model=self.settings.checkin_model,
                system=ROUTE_SYSTEM_PROMPT,
                prompt=build_route_prompt(member_name, start, end, crisis_events),
                schema_name="route_info",
                contract=RouteInfo,
                failure_message="Route analysis failed.",
            )
            return self._validate(RouteInfo, content, "assess_route", "Route analysis failed.")
        except Exception as e:
            logger.error(f"Error getting route intelligence for {member_name}: {e}")
            return NON_VIABLE_ROUTE

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_online(self, action: str) -> None:
        if not self.monitor.is_online:
            raise OfflineError(action=action)

    def _complete(
        self,
        operation: str,
        model: str,
        system: str,
        prompt: str,
        schema_name: str,
        contract: Type[BaseModel],
        failure_message: str,
    ) -> str:
        client = self.client
        try:
            response = client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                response_format=response_format(schema_name, contract),
                temperature=self.settings.temperature,
            )
        except openai.APIConnectionError as e:
            logger.error(f"AI provider unreachable ({operation}): {e}")
            self.monitor.handle_offline()
            raise AIGenerationError(failure_message, operation=operation, model=model) from e
        except Exception as e:
            logger.error(f"AI provider call failed ({operation}): {e}")
            raise AIGenerationError(failure_message, operation=operation, model=model) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise InvalidResponseError(failure_message, operation=operation, errors=[str(e)]) from e
        if not content:
            raise InvalidResponseError(failure_message, operation=operation, errors=["empty response"])
        return content

    def _validate(self, contract: Type[M], content: str, operation: str, failure_message: str) -> M:
        try:
            payload = json.loads(content.strip())
        except json.JSONDecodeError as e:
            logger.error(f"AI returned non-JSON payload ({operation}): {e}")
            raise InvalidResponseError(failure_message, operation=operation, errors=[str(e)]) from e

        try:
            return contract.model_validate(payload)
        except ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            logger.error(f"AI response failed validation ({operation}): {errors}")
            raise InvalidResponseError(failure_message, operation=operation, errors=errors) from e
