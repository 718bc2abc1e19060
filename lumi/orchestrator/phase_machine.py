"""Conversation phase state machine.

Onboarding -> Companion when a blueprint is materialized, Companion -> Witness
only on a confirmed completion command (or when the last daily task is
completed), Witness -> Onboarding on explicit restart. Commands embedded in
model output are applied here and nowhere else.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Literal, Optional, Set

from pydantic import BaseModel

from ..errors import CommandRejected
from ..schemas.chat import ConversationPhase
from ..schemas.command import ActionCommand, ActionKind, CommandOutcome
from ..schemas.goal import Goal
from .confirmation import PendingConfirmation, asks_completion_question, confirmation_evidence, detect_completion_claim
from .goals import GoalNotFound, GoalStore

logger = logging.getLogger(__name__)

EventKind = Literal["phase_changed", "goal_changed", "command_rejected"]


class PhaseEvent(BaseModel):
    kind: EventKind
    phase: ConversationPhase
    previous_phase: Optional[ConversationPhase] = None
    goal_id: Optional[str] = None
    detail: Optional[str] = None


Listener = Callable[[PhaseEvent], None]


@dataclass(frozen=True)
class TurnContext:
    user_text: str
    completion_claim: bool
    confirmed: bool


class PhaseMachine:
    def __init__(self, store: GoalStore, clock: Callable[[], date] = date.today) -> None:
        self.store = store
        self.phase = ConversationPhase.ONBOARDING
        self.active_goal_id: Optional[str] = None
        self.pending_confirmation: Optional[PendingConfirmation] = None
        self._clock = clock
        self._listeners: Set[Listener] = set()
        self._turn: Optional[TurnContext] = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.add(listener)

        def unsubscribe() -> None:
            self._listeners.discard(listener)

        return unsubscribe

    def _emit(self, event: PhaseEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Phase listener failed on %s", event.kind)

    def _transition(self, target: ConversationPhase, reason: str) -> None:
        previous = self.phase
        if previous == target:
            return
        self.phase = target
        logger.info("Phase %s -> %s (%s)", previous.value, target.value, reason, extra={"lumi_phase": target.value})
        self._emit(PhaseEvent(kind="phase_changed", phase=target, previous_phase=previous, goal_id=self.active_goal_id, detail=reason))

    def begin_turn(self, user_text: str, goal_title: Optional[str] = None) -> TurnContext:
        confirmed = confirmation_evidence(self.pending_confirmation, user_text, self.active_goal_id)
        self._turn = TurnContext(user_text=user_text, completion_claim=detect_completion_claim(user_text, goal_title), confirmed=confirmed)
        return self._turn

    def end_turn(self, reply_text: str, command: Optional[ActionCommand] = None) -> None:
        turn = self._turn
        self._turn = None
        # A pending question only covers the very next human message.
        self.pending_confirmation = None
        if not turn or self.phase != ConversationPhase.COMPANION or not self.active_goal_id:
            return
        if command and command.action is ActionKind.TRIGGER_COMPLETION:
            return
        if (turn.completion_claim or turn.confirmed) and asks_completion_question(reply_text):
            self.pending_confirmation = PendingConfirmation.open(self.active_goal_id, reply_text.strip())
            logger.info("Completion confirmation requested for goal %s", self.active_goal_id, extra={"lumi_goal_id": self.active_goal_id})

    def abort_turn(self) -> None:
        self._turn = None

    async def goal_created(self, goal: Goal) -> None:
        self.active_goal_id = goal.id
        self.pending_confirmation = None
        self._emit(PhaseEvent(kind="goal_changed", phase=self.phase, goal_id=goal.id, detail="created"))
        self._transition(ConversationPhase.COMPANION, "blueprint materialized")

    async def goal_progressed(self, goal: Goal) -> None:
        self._emit(PhaseEvent(kind="goal_changed", phase=self.phase, goal_id=goal.id, detail="task_completed"))
        if goal.is_completed and self.phase == ConversationPhase.COMPANION and goal.id == self.active_goal_id:
            self.pending_confirmation = None
            self._transition(ConversationPhase.WITNESS, "all daily tasks completed")

    async def restart(self) -> None:
        if self.phase != ConversationPhase.WITNESS:
            raise CommandRejected("restart", f"restart is only available after completion (phase is {self.phase.value})")
        self.active_goal_id = None
        self.pending_confirmation = None
        self._transition(ConversationPhase.ONBOARDING, "user restart")

    def _reject(self, command: ActionCommand, reason: str) -> CommandOutcome:
        logger.warning("Rejected action %s: %s", command.raw_action, reason, extra={"lumi_action": command.raw_action})
        self._emit(PhaseEvent(kind="command_rejected", phase=self.phase, goal_id=self.active_goal_id, detail=f"{command.raw_action}: {reason}"))
        return CommandOutcome(action=command.action, raw_action=command.raw_action, applied=False, reason=reason, goal_id=self.active_goal_id)

    def _applied(self, command: ActionCommand, reason: str, goal_id: Optional[str]) -> CommandOutcome:
        logger.info("Applied action %s: %s", command.raw_action, reason, extra={"lumi_action": command.raw_action, "lumi_goal_id": goal_id})
        return CommandOutcome(action=command.action, raw_action=command.raw_action, applied=True, reason=reason, goal_id=goal_id)

    async def apply(self, command: ActionCommand) -> CommandOutcome:
        if command.action is ActionKind.UNKNOWN:
            return self._reject(command, "unrecognized action")
        if self.phase == ConversationPhase.WITNESS:
            return self._reject(command, "no commands are accepted during the witness phase")
        if command.action is ActionKind.TRIGGER_COMPLETION:
            return await self._apply_completion(command)
        if command.action is ActionKind.UPDATE_TODAY_TASK:
            return await self._apply_task_update(command)
        return await self._apply_reset(command)

    async def _apply_completion(self, command: ActionCommand) -> CommandOutcome:
        if self.phase != ConversationPhase.COMPANION:
            return self._reject(command, f"completion is not valid in the {self.phase.value} phase")
        goal = await self.store.fetch_active_goal()
        if not goal:
            return self._reject(command, "no active goal")
        turn = self._turn
        if not turn or not turn.confirmed:
            return self._reject(command, "no affirmative reply to a prior confirmation question")
        completed = await self.store.force_complete(goal.id)
        self.active_goal_id = completed.id
        self.pending_confirmation = None
        self._emit(PhaseEvent(kind="goal_changed", phase=self.phase, goal_id=completed.id, detail="completed"))
        self._transition(ConversationPhase.WITNESS, "confirmed completion")
        return self._applied(command, "goal completed and archived", completed.id)

    async def _apply_task_update(self, command: ActionCommand) -> CommandOutcome:
        if not command.new_task_label:
            return self._reject(command, "missing new_task_label")
        goal = await self.store.fetch_active_goal()
        if not goal:
            return self._reject(command, "no active goal")
        try:
            updated = await self.store.rewrite_task(goal.id, self._clock(), command.new_task_label)
        except GoalNotFound as error:
            return self._reject(command, str(error))
        self._emit(PhaseEvent(kind="goal_changed", phase=self.phase, goal_id=updated.id, detail="today_task_updated"))
        return self._applied(command, f"today's task is now '{command.new_task_label}'", updated.id)

    async def _apply_reset(self, command: ActionCommand) -> CommandOutcome:
        goal = await self.store.fetch_active_goal()
        if not goal:
            return self._reject(command, "no active goal")
        await self.store.delete_goal(goal.id)
        self.active_goal_id = None
        self.pending_confirmation = None
        self._emit(PhaseEvent(kind="goal_changed", phase=self.phase, goal_id=goal.id, detail="deleted"))
        self._transition(ConversationPhase.ONBOARDING, "goal reset")
        return self._applied(command, "goal deleted", goal.id)
