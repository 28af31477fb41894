from mocktrial.services.verdict_aggregation import (
    MAJORITY,
    NO_CONSENSUS,
    STRONG_CONSENSUS,
    aggregate_verdicts,
    consensus_level,
    numeric_summary,
    tally_choices,
)


def _verdicts(answers, qid="q1"):
    return [
        {"jurorId": f"j{i}", "jurorName": f"Juror {i}", "responses": {qid: a}}
        for i, a in enumerate(answers)
    ]


def test_consensus_thresholds():
    assert consensus_level(75) == STRONG_CONSENSUS
    assert consensus_level(74.9) == MAJORITY
    assert consensus_level(51) == MAJORITY
    assert consensus_level(50) == NO_CONSENSUS


def test_yes_no_strong_consensus():
    question = {"id": "q1", "text": "Liable?", "type": "Yes/No", "isRequired": True}
    result = aggregate_verdicts([question], _verdicts(["Yes", "Yes", "Yes", "No"]))
    assert result["totalVerdicts"] == 4
    summary = result["questions"][0]["results"]
    assert summary["consensus"] == STRONG_CONSENSUS
    assert summary["consensusOption"] == "Yes"
    assert summary["consensusPercentage"] == 75.0
    assert summary["options"] == [
        {"option": "Yes", "count": 3, "percentage": 75.0},
        {"option": "No", "count": 1, "percentage": 25.0},
    ]


def test_unanswered_ballots_count_in_the_denominator():
    summary = tally_choices(["A", "A", None, ""], total_verdicts=4)
    assert summary["consensusPercentage"] == 50.0
    assert summary["consensus"] == NO_CONSENSUS


def test_choice_tie_goes_to_first_seen():
    summary = tally_choices(["B", "A", "A", "B"], total_verdicts=4)
    assert summary["consensusOption"] == "B"


def test_numeric_summary():
    summary = numeric_summary([10, "20", 20, 30])
    assert summary["average"] == 20
    assert summary["median"] == 20
    assert summary["mode"] == 20
    assert summary["min"] == 10
    assert summary["max"] == 30
    assert summary["range"] == 20
    assert summary["stdDev"] == 7.07
    assert summary["count"] == 4


def test_numeric_mode_tie_takes_smallest():
    assert numeric_summary([5, 3, 5, 3, 9])["mode"] == 3


def test_numeric_ignores_non_numbers():
    summary = numeric_summary(["abc", None, 4, True])
    assert summary["count"] == 1
    assert numeric_summary(["abc"]) == {}


def test_text_answers_listed():
    question = {"id": "q1", "text": "Why?", "type": "Text Response"}
    result = aggregate_verdicts([question], _verdicts(["Because", ""]))
    assert result["questions"][0]["results"]["responses"] == [
        {"jurorId": "j0", "jurorName": "Juror 0", "answer": "Because"}
    ]


def test_no_verdicts():
    assert aggregate_verdicts([{"id": "q1", "type": "Yes/No"}], []) == {"totalVerdicts": 0, "questions": []}
