import pytest

from lumi.errors import SchemaResolutionError
from lumi.orchestrator.commands import interpret_command
from lumi.schemas.command import ActionKind


def test_fenced_command_is_interpreted():
    text = '好的，今天我们轻松一点。\n```json\n{"action": "update_today_task", "new_task_label": "散步10分钟"}\n```'
    command = interpret_command(text)
    assert command.action is ActionKind.UPDATE_TODAY_TASK
    assert command.new_task_label == "散步10分钟"


def test_inline_command_via_action_signal():
    command = interpret_command('恭喜你！{"action":"trigger_phase_3_completion"} 你做到了')
    assert command.action is ActionKind.TRIGGER_COMPLETION


def test_camel_case_label_alias():
    command = interpret_command('{"action": "update_today_task", "newTaskLabel": "Stretch"}')
    assert command.new_task_label == "Stretch"


def test_unknown_action_is_preserved():
    command = interpret_command('{"action": "delete_everything"}')
    assert command.action is ActionKind.UNKNOWN
    assert command.raw_action == "delete_everything"


def test_plan_json_is_not_a_command():
    assert interpret_command('```json\n{"goal_title": "Run", "phases": [{"days": 3}]}\n```') is None


def test_conversation_without_json_is_not_a_command():
    assert interpret_command("You did great today. Rest well.") is None


def test_action_with_wrong_type_raises():
    with pytest.raises(SchemaResolutionError) as exc:
        interpret_command('{"action": 7}')
    assert exc.value.field == "action"
