"""Tests for suggestion ranking (task_engine/suggest.py)."""

from __future__ import annotations

from task_planner.task_engine.model import Task
from task_planner.task_engine.policy import CrossKindRule, DependencyPolicy, PolicyConfig
from task_planner.task_engine.suggest import relevance_score, suggest_candidates

# Lets the scoring example through regardless of kind/epic.
OPEN = PolicyConfig(
    policy=DependencyPolicy.WHITELIST_CROSS_KIND,
    cross_kind_whitelist=(CrossKindRule("Dev", "Ops"), CrossKindRule("Dev", "Design")),
)
EPIC_OR_KIND = PolicyConfig(policy=DependencyPolicy.SAME_EPIC_OR_SAME_KIND)


def _source() -> Task:
    return Task(id="S", domain="web", epic_id="E1", kind="Dev", etiquettes=["ui"])


class TestRelevanceScore:
    def test_example_scores(self) -> None:
        s = _source()
        x = Task(id="X", domain="web", epic_id="E2", kind="Ops", etiquettes=["ui", "perf"])
        y = Task(id="Y", epic_id="E1", kind="Design")
        assert relevance_score(s, x) == 13
        assert relevance_score(s, y) == 10

    def test_all_weights(self) -> None:
        s = Task(id="S", domain="api", epic_id="E", kind="Dev", etiquettes=["a", "b", "c"])
        t = Task(id="T", domain="api", epic_id="E", kind="Dev", etiquettes=["c", "b", "z"])
        assert relevance_score(s, t) == 12 + 10 + 5 + 2

    def test_duplicate_labels_count_once(self) -> None:
        s = Task(id="S", etiquettes=["ui", "ui"])
        t = Task(id="T", etiquettes=["ui"])
        assert relevance_score(s, t) == 1

    def test_missing_fields_score_nothing(self) -> None:
        assert relevance_score(Task(id="S"), Task(id="T")) == 0


class TestSuggestCandidates:
    def test_example_order(self) -> None:
        s = _source()
        y = Task(id="Y", epic_id="E1", kind="Design")
        x = Task(id="X", domain="web", epic_id="E2", kind="Ops", etiquettes=["ui", "perf"])
        result = suggest_candidates(s, [s, y, x], config=OPEN)
        assert [t.id for t in result] == ["X", "Y"]

    def test_limit_keeps_top_scores(self) -> None:
        s = Task(id="S", kind="Dev", etiquettes=[f"l{i}" for i in range(20)])
        tasks = [Task(id=f"T{i}", kind="Dev", etiquettes=[f"l{j}" for j in range(i)]) for i in range(20)]
        result = suggest_candidates(s, tasks, 8, config=EPIC_OR_KIND)
        assert len(result) == 8
        assert [t.id for t in result] == [f"T{i}" for i in range(19, 11, -1)]

    def test_default_limit_is_eight(self) -> None:
        s = Task(id="S", kind="Dev")
        tasks = [Task(id=f"T{i}", kind="Dev") for i in range(20)]
        assert len(suggest_candidates(s, tasks, config=EPIC_OR_KIND)) == 8

    def test_ties_keep_input_order(self) -> None:
        s = Task(id="S", kind="Dev")
        tasks = [Task(id=f"T{i}", kind="Dev") for i in range(5)]
        first = suggest_candidates(s, tasks, config=EPIC_OR_KIND)
        second = suggest_candidates(s, tasks, config=EPIC_OR_KIND)
        assert [t.id for t in first] == ["T0", "T1", "T2", "T3", "T4"]
        assert [t.id for t in first] == [t.id for t in second]

    def test_archived_never_suggested(self) -> None:
        s = _source()
        perfect = Task(id="P", domain="web", epic_id="E1", kind="Dev", etiquettes=["ui"], archived=True)
        other = Task(id="O", kind="Dev")
        result = suggest_candidates(s, [perfect, other], config=OPEN)
        assert [t.id for t in result] == ["O"]

    def test_policy_filters_candidates(self) -> None:
        s = _source()
        wrong_domain = Task(id="W", domain="mobile", kind="Dev", epic_id="E1")
        unrelated = Task(id="U", kind="Ops")
        assert suggest_candidates(s, [wrong_domain, unrelated], config=EPIC_OR_KIND) == []

    def test_source_excluded(self) -> None:
        s = _source()
        assert suggest_candidates(s, [s], config=OPEN) == []

    def test_zero_limit(self) -> None:
        s = Task(id="S", kind="Dev")
        assert suggest_candidates(s, [Task(id="T", kind="Dev")], 0, config=EPIC_OR_KIND) == []
