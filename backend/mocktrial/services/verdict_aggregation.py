"""
services/verdict_aggregation.py

Per-question summaries of submitted verdicts. Pure functions; the verdict
service loads questions and verdicts and hands them over.

  - Multiple Choice / Yes/No: count per option, percentage of all verdicts,
    consensus on the most chosen option
  - Numeric Response: average, median, mode, min/max/range, population std-dev
  - Text Response: the answers as given

Juror counts are small (at most 12), so everything is a single in-memory pass.
"""

from __future__ import annotations

import statistics
from typing import Any, Dict, Iterable, List, Optional

from mocktrial.db.models import QuestionType

STRONG_CONSENSUS = "STRONG_CONSENSUS"
MAJORITY = "MAJORITY"
NO_CONSENSUS = "NO_CONSENSUS"

STRONG_CONSENSUS_THRESHOLD = 75
MAJORITY_THRESHOLD = 51


def consensus_level(percentage: float) -> str:
    if percentage >= STRONG_CONSENSUS_THRESHOLD:
        return STRONG_CONSENSUS
    if percentage >= MAJORITY_THRESHOLD:
        return MAJORITY
    return NO_CONSENSUS


def _answered(answer: Any) -> bool:
    return answer is not None and answer != ""


def tally_choices(answers: Iterable[Any], total_verdicts: int) -> Dict[str, Any]:
    """
    Option counts in first-seen order. Percentages are over all verdicts,
    so unanswered ballots pull every option down. Ties for the top spot go
    to the option seen first.
    """
    counts: Dict[str, int] = {}
    for answer in answers:
        if _answered(answer):
            key = str(answer)
            counts[key] = counts.get(key, 0) + 1

    options = [
        {"option": option, "count": count, "percentage": count / total_verdicts * 100}
        for option, count in counts.items()
    ]
    if not counts:
        return {"options": options, "consensus": NO_CONSENSUS, "consensusOption": None, "consensusPercentage": 0.0}

    max_count = max(counts.values())
    top = next(option for option, count in counts.items() if count == max_count)
    percentage = max_count / total_verdicts * 100
    return {
        "options": options,
        "consensus": consensus_level(percentage),
        "consensusOption": top,
        "consensusPercentage": percentage,
    }


def _to_number(answer: Any) -> Optional[float]:
    if isinstance(answer, bool):
        return None
    try:
        return float(answer)
    except (TypeError, ValueError):
        return None


def numeric_summary(answers: Iterable[Any]) -> Dict[str, Any]:
    """Statistics over the answers that parse as numbers. Mode ties go to the smallest value."""
    numbers = sorted(n for n in (_to_number(a) for a in answers) if n is not None)
    if not numbers:
        return {}

    average = statistics.fmean(numbers)
    return {
        "average": round(average, 2),
        "median": round(statistics.median(numbers), 2),
        "mode": min(statistics.multimode(numbers)),
        "min": numbers[0],
        "max": numbers[-1],
        "range": numbers[-1] - numbers[0],
        "stdDev": round(statistics.pstdev(numbers, mu=average), 2),
        "count": len(numbers),
    }


def aggregate_question(question: Dict[str, Any], verdicts: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    ``question``: id, text, type, isRequired.
    ``verdicts``: jurorId, jurorName, responses (question id -> answer).
    """
    qid = str(question["id"])
    individual = [
        {
            "jurorId": v.get("jurorId"),
            "jurorName": v.get("jurorName"),
            "answer": (v.get("responses") or {}).get(qid),
        }
        for v in verdicts
    ]
    answers = [r["answer"] for r in individual]

    qtype = question["type"]
    if qtype in (QuestionType.multiple_choice.value, QuestionType.yes_no.value):
        results = tally_choices(answers, len(verdicts))
    elif qtype == QuestionType.numeric_response.value:
        results = numeric_summary(answers)
    else:
        results = {
            "responses": [
                {"jurorId": r["jurorId"], "jurorName": r["jurorName"], "answer": r["answer"]}
                for r in individual
                if _answered(r["answer"])
            ]
        }

    return {
        "questionId": qid,
        "questionText": question.get("text"),
        "questionType": qtype,
        "isRequired": question.get("isRequired", True),
        "results": results,
        "individual": individual,
    }


def aggregate_verdicts(questions: List[Dict[str, Any]], verdicts: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not verdicts:
        return {"totalVerdicts": 0, "questions": []}
    return {
        "totalVerdicts": len(verdicts),
        "questions": [aggregate_question(q, verdicts) for q in questions],
    }
