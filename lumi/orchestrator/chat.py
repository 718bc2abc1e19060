import logging
import re
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..agent.cache import EncouragementCache
from ..agent.telemetry import Telemetry
from ..config import Config
from ..errors import CommandRejected, LumiError, NotConfiguredError, SchemaResolutionError
from ..schemas.chat import ConversationPhase, ErrorCard, TurnResult
from ..schemas.goal import Goal
from .commands import interpret_command
from .confirmation import classify_reply
from .extractor import Found, extract_payload
from .goals import GoalStore, calculate_streak, current_day_number, longest_streak, task_for_date
from .materializer import persist_blueprint
from .phase_machine import PhaseMachine
from .prompts import PromptManager
from .resolver import Unresolved, try_resolve_blueprint
from .transport import ChatTransport, CompletionClient, Message, build_request_body

logger = logging.getLogger(__name__)

PAYLOAD_BLOCK = re.compile(r"```[A-Za-z]*\s*\{[\s\S]*?\}\s*```", re.IGNORECASE)
SILENT_EVENT_REQUEST = "Generate one short encouragement line for this event."
PLAN_NOT_UNDERSTOOD = "I could not understand the plan. Please ask Lumi to send it again."


def strip_payload_blocks(text: str) -> str:
    return PAYLOAD_BLOCK.sub("", text).strip()


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatService:
    def __init__(
        self,
        config: Config,
        store: GoalStore,
        client: CompletionClient,
        prompts: Optional[PromptManager] = None,
        machine: Optional[PhaseMachine] = None,
        telemetry: Optional[Telemetry] = None,
        encouragement: Optional[EncouragementCache] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.config = config
        self.store = store
        self.client = client
        self.prompts = prompts or PromptManager()
        self.machine = machine or PhaseMachine(store, clock=clock)
        self.telemetry = telemetry or Telemetry()
        self.encouragement = encouragement or EncouragementCache()
        self.clock = clock

    def _ensure_configured(self) -> None:
        if not self.config.is_configured:
            raise NotConfiguredError()

    def _body(self, messages: List[Message]) -> Dict[str, Any]:
        return build_request_body(messages, self.config.model, self.config.temperature, self.config.max_tokens)

    async def _history(self) -> List[Message]:
        messages = await self.store.list_messages(limit=self.config.history_limit)
        return [message.api_format() for message in messages if message.role != "system"]

    def _companion_context(self, goal: Goal) -> str:
        today = self.clock()
        task = task_for_date(goal, today)
        status = "completed" if task and task.is_completed else "not started"
        lines = [
            f"Current vision: {goal.title}",
            f"Day {current_day_number(goal, today)} of {goal.total_days}",
            f"Today's status: {status}",
            f"Streak days: {calculate_streak(goal, today)}",
        ]
        if task:
            lines.append(f"Today's task: {task.label}")
        return "\n".join(lines)

    def _witness_context(self, goal: Goal) -> str:
        return "\n".join(
            [
                f"Vision: {goal.title}",
                f"Days persisted: {goal.total_days}",
                f"Highlight: {longest_streak(goal)} consecutive days completed",
            ]
        )

    async def _sync_active_goal(self) -> Optional[Goal]:
        goal = await self.store.fetch_active_goal()
        if self.machine.phase == ConversationPhase.COMPANION and goal:
            self.machine.active_goal_id = goal.id
        return goal

    async def send_message(self, text: str) -> TurnResult:
        trimmed = (text or "").strip()
        if not trimmed:
            raise ValueError("Message text is empty")
        self._ensure_configured()
        started_at = _now_ms()
        phase = self.machine.phase

        context = ""
        goal_title: Optional[str] = None
        directive: Optional[str] = None
        if phase == ConversationPhase.COMPANION:
            goal = await self._sync_active_goal()
            if goal:
                context = self._companion_context(goal)
                goal_title = goal.title
        elif phase == ConversationPhase.WITNESS and self.machine.active_goal_id:
            completed = await self.store.get_goal(self.machine.active_goal_id)
            if completed:
                context = self._witness_context(completed)

        turn = self.machine.begin_turn(trimmed, goal_title)
        if phase == ConversationPhase.COMPANION:
            if turn.confirmed:
                directive = self.prompts.directive("completion_confirmed")
            elif turn.completion_claim:
                directive = self.prompts.directive("completion_claim")

        await self.store.append_message("user", trimmed)
        messages = [{"role": "system", "content": self.prompts.system_prompt(phase, context, directive)}]
        messages.extend(await self._history())

        try:
            decoded = await self.client.complete(self._body(messages))
        except LumiError as error:
            self.machine.abort_turn()
            await self.telemetry.record({"phaseBefore": phase.value, "userIntent": classify_reply(trimmed)["intent"], "error": str(error), "startedAt": started_at})
            raise

        reply = decoded.text
        await self.store.append_message("assistant", reply, linked_goal_id=self.machine.active_goal_id)
        result = TurnResult(phase=phase, reply=reply, display_text=strip_payload_blocks(reply))

        pipeline = "conversation"
        try:
            if phase == ConversationPhase.ONBOARDING:
                pipeline = await self._run_blueprint_pipeline(reply, result)
            elif phase in (ConversationPhase.COMPANION, ConversationPhase.WITNESS):
                pipeline = await self._run_command_pipeline(reply, result)
        except Exception:
            self.machine.abort_turn()
            raise

        self.machine.end_turn(reply, result.command)
        result.phase = self.machine.phase
        await self.telemetry.record(
            {
                "phaseBefore": phase.value,
                "phaseAfter": result.phase.value,
                "userIntent": classify_reply(trimmed)["intent"],
                "transport": decoded.transport,
                "pipeline": pipeline,
                "action": result.command.raw_action if result.command else None,
                "applied": result.outcome.applied if result.outcome else None,
                "reason": result.outcome.reason if result.outcome else None,
                "error": result.error.kind if result.error else None,
                "startedAt": started_at,
            }
        )
        return result

    async def _run_blueprint_pipeline(self, reply: str, result: TurnResult) -> str:
        extraction = extract_payload(reply)
        if not isinstance(extraction, Found):
            if extraction.saw_candidate:
                result.error = ErrorCard(kind="extraction_failure", message=PLAN_NOT_UNDERSTOOD, missing="JSON plan object")
                return "extraction_failure"
            return "conversation"
        resolved = try_resolve_blueprint(extraction.data)
        if isinstance(resolved, Unresolved):
            logger.warning("Blueprint field %s unresolved (%s); tried %s", resolved.field, resolved.reason, ", ".join(resolved.aliases))
            result.error = ErrorCard(
                kind="schema_resolution",
                message=f"{PLAN_NOT_UNDERSTOOD} '{resolved.field}': {resolved.reason} (tried {', '.join(resolved.aliases)}).",
                missing=resolved.field,
            )
            return "schema_resolution"
        goal = await persist_blueprint(self.store, resolved.blueprint, self.clock())
        await self.machine.goal_created(goal)
        result.goal = goal
        return "goal_created"

    async def _run_command_pipeline(self, reply: str, result: TurnResult) -> str:
        try:
            command = interpret_command(reply)
        except SchemaResolutionError as error:
            result.error = ErrorCard(kind="schema_resolution", message=str(error), missing=error.field)
            return "schema_resolution"
        if not command:
            return "conversation"
        result.command = command
        result.outcome = await self.machine.apply(command)
        if result.outcome.goal_id:
            result.goal = await self.store.get_goal(result.outcome.goal_id)
        return "command"

    async def send_silent_event(self, trigger: str, context: str = "") -> Dict[str, str]:
        try:
            self._ensure_configured()
            messages = [
                {"role": "system", "content": self.prompts.silent_event_prompt(trigger, context)},
                {"role": "user", "content": SILENT_EVENT_REQUEST},
            ]
            decoded = await self.client.complete(self._body(messages))
        except LumiError as error:
            logger.info("Silent event %s falling back to a local phrase: %s", trigger, error)
            return {"text": await self.encouragement.pick_local(trigger), "source": "local"}
        phrase = decoded.text.strip().strip('"“”').strip()
        if not phrase:
            return {"text": await self.encouragement.pick_local(trigger), "source": "local"}
        await self.encouragement.remember(trigger, phrase)
        return {"text": phrase, "source": "ai"}

    async def request_witness_letter(self) -> TurnResult:
        if self.machine.phase != ConversationPhase.WITNESS or not self.machine.active_goal_id:
            raise CommandRejected("witness_letter", "the letter is only written after completion")
        self._ensure_configured()
        goal = await self.store.get_goal(self.machine.active_goal_id)
        context = self._witness_context(goal) if goal else ""
        messages = [{"role": "system", "content": self.prompts.system_prompt(ConversationPhase.WITNESS, context)}]
        messages.extend(await self._history())
        messages.append({"role": "user", "content": self.prompts.directive("witness_letter")})
        decoded = await self.client.complete(self._body(messages))
        letter = decoded.text.strip()
        await self.store.append_message("assistant", letter, linked_goal_id=self.machine.active_goal_id)
        return TurnResult(phase=self.machine.phase, reply=letter, display_text=strip_payload_blocks(letter), goal=goal)

    async def restart(self) -> None:
        await self.machine.restart()
        await self.store.clear_messages()

    async def complete_task(self, goal_id: str, task_id: str) -> Goal:
        goal = await self.store.complete_daily_task(goal_id, task_id)
        await self.machine.goal_progressed(goal)
        return goal

    async def session_state(self) -> Dict[str, Any]:
        messages = await self.store.list_messages()
        return {
            "phase": self.machine.phase.value,
            "activeGoalId": self.machine.active_goal_id,
            "awaitingConfirmation": self.machine.pending_confirmation is not None,
            "historyCount": len(messages),
        }


def build_client(config: Config, http_client: Optional[httpx.AsyncClient] = None) -> CompletionClient:
    primary = ChatTransport("primary", config.primary_url, config.primary_api_key, config.timeout_seconds, http_client)
    fallback = None
    if config.has_fallback:
        fallback = ChatTransport("fallback", config.fallback_url, config.fallback_api_key, config.timeout_seconds, http_client)
    return CompletionClient(primary, fallback)


def build_chat_service(config: Config, http_client: Optional[httpx.AsyncClient] = None) -> ChatService:
    return ChatService(config=config, store=GoalStore(), client=build_client(config, http_client))
