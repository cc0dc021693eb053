from yaaai.evaluation.usage import usage_report
from yaaai.schemas.messages import ChatMessage


def test_usage_report_sums_annotation_costs():
    message = ChatMessage.assistant("reply")
    message.set("summary", "One sentence.", 12)
    message.set("keywords", ["a", "b"], 5)
    message.set("entities", [])
    message.set("duration", 830.0)

    report = usage_report(message)

    assert report.per_key == {"summary": 12, "keywords": 5, "entities": 0}
    assert report.total == 17
