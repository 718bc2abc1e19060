import pytest

from lumi.orchestrator.confirmation import (
    asks_completion_question,
    classify_reply,
    detect_completion_claim,
    is_affirmative,
    is_negative,
)


@pytest.mark.parametrize(
    "text",
    ["I finished everything", "I think I'm done with it all", "All done with the whole plan!", "我全部完成了", "整个目标都实现了"],
)
def test_whole_goal_claims(text):
    assert detect_completion_claim(text)


@pytest.mark.parametrize(
    "text",
    ["今天的任务完成了", "今天全部完成了", "Finished today's task!", "I completed my run", "完成了", "Done for tonight, everything is fine"],
)
def test_daily_check_ins_are_not_claims(text):
    assert not detect_completion_claim(text)


def test_goal_title_gives_whole_goal_scope():
    assert detect_completion_claim("跑完5公里，我做到了，完成了！", goal_title="跑完5公里")
    assert not detect_completion_claim("完成了！", goal_title="跑完5公里")


@pytest.mark.parametrize("text", ["yes", "Yes, I'm sure!", "是的", "是的，确认！", "确认", "对！", "没错。", "嗯"])
def test_affirmative_replies(text):
    assert is_affirmative(text)


@pytest.mark.parametrize("text", ["好累", "对不起", "好吧我再想想", "是不是还差一点", "No, not yet", "ok", "嗯，还没有"])
def test_non_affirmative_replies(text):
    assert not is_affirmative(text)


def test_negative_replies():
    assert is_negative("还没有，差一点")
    assert is_negative("wait, not yet")


def test_completion_question_must_be_about_the_whole_vision():
    assert asks_completion_question("太棒了！你确定整个愿景都已经完成了吗？")
    assert asks_completion_question("Wow. Are you ready to end the journey now?")
    assert not asks_completion_question("太棒了！今天感觉怎么样？")
    assert not asks_completion_question("今天的目标完成了吗？")
    assert not asks_completion_question("Your whole vision is glowing. Keep going!")


def test_classify_reply():
    assert classify_reply("是的")["intent"] == "affirmative"
    assert classify_reply("还没有")["intent"] == "negative"
    assert classify_reply("我全部完成了") == {"intent": "completion_claim", "completionClaim": True}
    assert classify_reply("今天的任务完成了") == {"intent": "conversational", "completionClaim": False}
