import logging
from typing import Optional

from ..schemas.command import ActionCommand, ActionKind
from .extractor import Found, extract_payload
from .resolver import ACTION_ALIASES, resolve_command

logger = logging.getLogger(__name__)


def interpret_command(text: str) -> Optional[ActionCommand]:
    """Find an embedded ``{"action": ...}`` object and resolve it."""
    result = extract_payload(text, signal_keys=ACTION_ALIASES, required_keys=ACTION_ALIASES)
    if not isinstance(result, Found):
        return None
    command = resolve_command(result.data)
    if command.action is ActionKind.UNKNOWN:
        logger.warning("Model emitted unrecognized action '%s'", command.raw_action, extra={"lumi_action": command.raw_action})
    return command
