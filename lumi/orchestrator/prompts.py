import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..schemas.chat import ConversationPhase

logger = logging.getLogger(__name__)

PROMPT_FILES = ["global.yaml", "onboarding.yaml", "companion.yaml", "witness.yaml", "silent_event.yaml", "directives.yaml"]
SECTION_BREAK = "\n\n---\n\n"


class PromptManager:
    def __init__(self, prompts_path: Optional[Path] = None) -> None:
        self.prompts_path = prompts_path or Path(__file__).resolve().parent.parent / "prompts"
        self.documents: Dict[str, Dict[str, Any]] = {}
        self._load_prompts()

    def _load_prompts(self) -> None:
        for file in PROMPT_FILES:
            file_path = self.prompts_path / file
            try:
                parsed = yaml.safe_load(file_path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as error:
                logger.warning("Could not load prompt document %s: %s", file_path, error)
                continue
            if not isinstance(parsed, dict) or not parsed.get("name"):
                logger.warning("Prompt document %s has no name", file_path)
                continue
            self.documents[str(parsed["name"])] = parsed
        missing = {"global", "onboarding", "companion", "witness", "silent_event"} - set(self.documents)
        if missing:
            raise RuntimeError(f"Prompt documents missing: {', '.join(sorted(missing))}")

    def _body(self, name: str) -> str:
        return str(self.documents[name].get("body") or "").strip()

    def directive(self, name: str) -> str:
        directives = self.documents.get("directives") or {}
        return str(directives.get(name) or "").strip()

    def system_prompt(self, phase: ConversationPhase, context: str = "", directive: Optional[str] = None) -> str:
        prompt = self._body("global") + SECTION_BREAK + self._body(phase.value)
        if context:
            prompt += f"{SECTION_BREAK}[Current context]\n{context}"
        if directive:
            prompt += f"{SECTION_BREAK}[Instruction for this reply]\n{directive}"
        return prompt

    def silent_event_prompt(self, trigger: str, context: str = "") -> str:
        prompt = self._body("global") + SECTION_BREAK + self._body("silent_event") + f"{SECTION_BREAK}[Event]\nType: {trigger}"
        if context:
            prompt += f"\nDetails: {context}"
        return prompt
