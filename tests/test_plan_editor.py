from core import plan_editor
from core.ai_schemas import RemoteTask
from core.models import Level, TaskCategory, TaskStatus

from conftest import make_task


def _ids(tasks):
    return [t.id for t in tasks]


def test_move_task_swaps_with_neighbour_and_keeps_input():
    tasks = [make_task("a"), make_task("b"), make_task("c")]

    moved = plan_editor.move_task(tasks, 1, plan_editor.UP)

    assert _ids(moved) == ["b", "a", "c"]
    assert _ids(tasks) == ["a", "b", "c"]
    assert _ids(plan_editor.move_task(tasks, 1, plan_editor.DOWN)) == ["a", "c", "b"]


def test_move_task_out_of_range_is_noop():
    tasks = [make_task("a"), make_task("b")]

    assert _ids(plan_editor.move_task(tasks, 0, plan_editor.UP)) == ["a", "b"]
    assert _ids(plan_editor.move_task(tasks, 1, plan_editor.DOWN)) == ["a", "b"]
    assert _ids(plan_editor.move_task(tasks, 7, plan_editor.UP)) == ["a", "b"]
    assert _ids(plan_editor.move_task(tasks, 0, "sideways")) == ["a", "b"]


def test_adjust_time_clamps_to_one_minute():
    tasks = [make_task("a", minutes=5), make_task("b", minutes=20)]

    shorter = plan_editor.adjust_time(tasks, "a", -5)
    longer = plan_editor.adjust_time(tasks, "b", 5)

    assert shorter[0].estimated_minutes == 1
    assert longer[1].estimated_minutes == 25
    assert tasks[0].estimated_minutes == 5
    assert plan_editor.adjust_time(tasks, "missing", 5) == tasks


def test_delete_and_total_duration():
    tasks = [make_task("a", minutes=15), make_task("b", minutes=70), make_task("c", minutes=5)]

    remaining = plan_editor.delete_task(tasks, "b")

    assert _ids(remaining) == ["a", "c"]
    assert plan_editor.total_duration(tasks) == 90
    assert plan_editor.total_duration([]) == 0
    assert plan_editor.format_total(90) == "~1h 30m"
    assert plan_editor.format_total(0) == "~0h 0m"
    assert _ids(plan_editor.delete_task(tasks, "zzz")) == ["a", "b", "c"]


def test_index_of():
    tasks = [make_task("a"), make_task("b")]
    assert plan_editor.index_of(tasks, "b") == 1
    assert plan_editor.index_of(tasks, "x") == -1


def test_reconcile_keeps_local_flags_by_id_and_creates_new_tasks():
    current = [
        make_task("a", "Dishes", minutes=10, status=TaskStatus.COMPLETED, description="sink first"),
        make_task("b", "Email", minutes=20),
    ]
    remote = [
        RemoteTask(id="b", title="Email boss", estimatedMinutes=15, description="ignored"),
        RemoteTask(id="a", title="Dishes", estimatedMinutes=10, category="home"),
        RemoteTask(title="Walk", estimatedMinutes=10),
    ]

    merged = plan_editor.reconcile_tasks(current, remote)

    assert [t.title for t in merged] == ["Email boss", "Dishes", "Walk"]
    assert merged[0].id == "b"
    assert merged[0].estimated_minutes == 15
    assert merged[0].description is None
    assert merged[1].status == TaskStatus.COMPLETED
    assert merged[1].description == "sink first"
    assert merged[2].id not in {"a", "b"}
    assert merged[2].status == TaskStatus.PENDING
    assert merged[2].category == TaskCategory.OTHER
    assert merged[2].energy_level == Level.MEDIUM


def test_reconcile_treats_unknown_and_repeated_ids_as_new():
    current = [make_task("a", status=TaskStatus.SKIPPED)]
    remote = [
        RemoteTask(id="a", title="first", estimatedMinutes=5),
        RemoteTask(id="a", title="again", estimatedMinutes=5),
        RemoteTask(id="zz", title="unknown", estimatedMinutes=0),
    ]

    merged = plan_editor.reconcile_tasks(current, remote)

    assert merged[0].id == "a" and merged[0].is_skipped
    assert merged[1].id != "a" and merged[1].status == TaskStatus.PENDING
    assert merged[2].id == "zz"
    assert merged[2].estimated_minutes == 1
    assert len({t.id for t in merged}) == 3


def test_moving_up_then_back_down_restores_the_list():
    tasks = [make_task(c) for c in "abcde"]

    for i in range(1, len(tasks)):
        there = plan_editor.move_task(tasks, i, plan_editor.UP)
        back = plan_editor.move_task(there, i - 1, plan_editor.DOWN)
        assert _ids(back) == _ids(tasks)
