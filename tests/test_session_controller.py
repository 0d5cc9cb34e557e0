import random
import threading
import time

import pytest

from core.ai_gateway import ORGANIZE_FALLBACK_MESSAGE, AIGateway
from core.models import Level, TaskStatus, UserState
from core.session_controller import MOTIVATIONAL_QUOTES, SessionController, View
from interface.notifiers.base import BaseNotifier

from conftest import FakeLLM, make_task


class RecordingNotifier(BaseNotifier):
    def __init__(self):
        super().__init__()
        self.sent = []

    def send(self, notification):
        self.sent.append(notification)
        return True

    def get_name(self):
        return "recording"


def _plan_reply(*titles):
    return {
        "tasks": [
            {"title": t, "category": "HOME", "estimatedMinutes": 10, "energyLevel": "low"}
            for t in titles
        ],
        "message": "Let's go.",
    }


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_controller(clock, notifier):
    def _make(*replies):
        llm = FakeLLM(*replies)
        controller = SessionController(
            gateway=AIGateway(llm=llm),
            clock=clock,
            notifiers=[notifier],
            user=UserState(name="Sam", streak=4),
            rng=random.Random(7),
        )
        controller.llm = llm
        return controller
    return _make


def _in_focus(controller, *titles):
    controller.llm.queue(_plan_reply(*titles))
    assert controller.start_brain_dump()
    assert controller.submit_brain_dump("; ".join(titles))
    assert controller.start_day()
    return controller


def test_dashboard_to_plan_review(make_controller):
    controller = make_controller(_plan_reply("Dishes", "Laundry"))

    assert controller.set_energy("high")
    assert controller.state.user.energy == Level.HIGH
    assert controller.start_brain_dump()
    assert controller.view == View.BRAIN_DUMP

    assert controller.submit_brain_dump("dishes, laundry")

    assert controller.view == View.PLAN_REVIEW
    assert [t.title for t in controller.tasks] == ["Dishes", "Laundry"]
    assert controller.state.ai_message == "Let's go."
    assert controller.state.cursor == 0
    assert not controller.state.processing


def test_empty_brain_dump_is_rejected(make_controller):
    controller = make_controller()
    controller.start_brain_dump()

    assert not controller.submit_brain_dump("   ")
    assert controller.view == View.BRAIN_DUMP
    assert controller.llm.calls == []


def test_invalid_events_are_ignored(make_controller):
    controller = make_controller()

    assert not controller.start_day()
    assert not controller.complete("x")
    assert not controller.skip("x")
    assert not controller.back()
    assert not controller.poll()
    assert not controller.move_task(0, "up")
    assert controller.refine_plan("make it shorter") is None
    assert controller.view == View.DASHBOARD


def test_organize_failure_still_reaches_plan_review_and_notifies(make_controller, notifier):
    controller = make_controller("broken")
    controller.start_brain_dump()

    assert controller.submit_brain_dump("clean room")

    assert controller.view == View.PLAN_REVIEW
    assert len(controller.tasks) == 1
    assert controller.state.ai_message == ORGANIZE_FALLBACK_MESSAGE
    assert len(notifier.sent) == 1


def test_new_brain_dump_replaces_previous_plan(make_controller):
    controller = _in_focus(make_controller(), "A", "B")
    controller.skip(controller.tasks[0].id)
    controller.skip(controller.tasks[1].id)
    assert controller.view == View.DASHBOARD

    controller.llm.queue(_plan_reply("C"))
    controller.start_brain_dump()
    controller.submit_brain_dump("c")

    assert [t.title for t in controller.tasks] == ["C"]
    assert controller.state.cursor == 0
    assert not controller.state.in_progress


def test_complete_last_task_celebrates_then_returns_to_dashboard(make_controller, clock):
    controller = _in_focus(make_controller(), "Only")
    task = controller.current_task

    assert controller.complete(task.id)

    assert controller.view == View.CELEBRATION
    assert controller.state.celebration_quote in MOTIVATIONAL_QUOTES
    assert controller.tasks[0].is_completed
    assert controller.state.user.tasks_completed_today == 1

    clock.advance(1)
    assert not controller.poll()
    assert controller.view == View.CELEBRATION
    clock.advance(2.5)
    assert controller.poll()
    assert controller.view == View.DASHBOARD


def test_complete_with_more_tasks_advances_after_short_dwell(make_controller, clock):
    controller = _in_focus(make_controller(), "A", "B")
    first, second = controller.tasks

    controller.complete(first.id)
    clock.advance(2.5)
    controller.poll()

    assert controller.view == View.FOCUS
    assert controller.state.cursor == 1
    assert controller.focus.task.id == second.id
    assert controller.focus.remaining_seconds == 600


def test_skip_last_goes_straight_to_dashboard(make_controller):
    controller = _in_focus(make_controller(), "A", "B")
    first, second = controller.tasks

    assert controller.skip(first.id)
    assert controller.view == View.FOCUS
    assert controller.current_task.id == second.id

    assert controller.skip(second.id)
    assert controller.view == View.DASHBOARD
    assert controller.state.celebration_quote is None
    assert all(t.status == TaskStatus.SKIPPED for t in controller.tasks)
    assert controller.state.user.tasks_completed_today == 0


def test_completed_counter_counts_each_completion_once(make_controller, clock):
    controller = _in_focus(make_controller(), "A", "B", "C")

    for _ in range(2):
        controller.complete(controller.current_task.id)
        clock.advance(3)
        controller.poll()
    controller.skip(controller.current_task.id)

    assert controller.state.user.tasks_completed_today == 2


def test_back_keeps_cursor_and_start_day_resumes(make_controller):
    controller = _in_focus(make_controller(), "A", "B")
    controller.skip(controller.tasks[0].id)
    controller.toggle_timer()

    assert controller.back()
    assert controller.view == View.PLAN_REVIEW
    assert not controller.focus.is_running
    assert controller.state.cursor == 1

    assert controller.start_day()
    assert controller.state.cursor == 1
    assert controller.current_task.title == "B"


def test_cursor_follows_focused_task_through_plan_edits(make_controller):
    controller = _in_focus(make_controller(), "A", "B", "C")
    controller.skip(controller.tasks[0].id)
    focused = controller.current_task
    assert focused.title == "B"
    controller.back()

    controller.move_task(1, "up")

    assert [t.title for t in controller.tasks] == ["B", "A", "C"]
    assert controller.state.cursor == 0
    assert controller.focus.task.id == focused.id

    controller.delete_task(focused.id)

    assert controller.current_task.title == "A"
    assert controller.focus.task.title == "A"


def test_adjust_time_on_focused_task_keeps_binding(make_controller):
    controller = _in_focus(make_controller(), "A")
    controller.back()
    task_id = controller.tasks[0].id

    assert controller.adjust_time(task_id, 5)

    assert controller.tasks[0].estimated_minutes == 15
    assert controller.focus.task.id == task_id
    assert controller.focus.task.estimated_minutes == 15


def test_deleting_every_task_ends_the_run(make_controller):
    controller = _in_focus(make_controller(), "A")
    controller.back()

    controller.delete_task(controller.tasks[0].id)

    assert controller.tasks == []
    assert not controller.state.in_progress
    assert controller.focus.task is None
    assert not controller.start_day()


def test_refine_replaces_plan_and_keeps_flags(make_controller):
    controller = _in_focus(make_controller(), "A", "B")
    a, b = controller.tasks
    controller.skip(a.id)
    controller.back()
    controller.llm.queue({
        "tasks": [
            {"id": b.id, "title": "B", "estimatedMinutes": 5},
            {"id": a.id, "title": "A", "estimatedMinutes": 5},
            {"title": "New", "estimatedMinutes": 3},
        ],
        "message": "Reordered.",
    })

    result = controller.refine_plan("B first")

    assert result is not None and not result.degraded
    assert [t.title for t in controller.tasks] == ["B", "A", "New"]
    assert controller.tasks[1].is_skipped
    assert controller.state.ai_message == "Reordered."
    assert controller.current_task.id == b.id


def test_refine_failure_keeps_plan_and_notifies(make_controller, notifier):
    controller = make_controller(_plan_reply("A", "B"), "nonsense")
    controller.start_brain_dump()
    controller.submit_brain_dump("a b")
    before = [t.id for t in controller.tasks]

    result = controller.refine_plan("shorter")

    assert result.degraded
    assert [t.id for t in controller.tasks] == before
    assert len(notifier.sent) == 1


def test_breakdown_writes_steps_onto_the_task(make_controller):
    controller = _in_focus(make_controller(), "Write report")
    controller.llm.queue({"steps": [{"title": "Open doc", "durationMinutes": 1}]})

    assert controller.request_breakdown()

    task = controller.tasks[0]
    assert [s.title for s in task.micro_steps] == ["Open doc"]
    step_id = controller.focus.micro_steps[0].id
    assert controller.toggle_micro_step(step_id)
    assert controller.focus.all_steps_done


def test_coaching_and_help_panel(make_controller):
    controller = _in_focus(make_controller(), "Write report")
    controller.llm.queue("Open the file and type the title.")

    assert controller.toggle_help()
    assert controller.request_coaching() == "Open the file and type the title."
    assert controller.clear_coaching()
    assert controller.focus.coaching_message is None

    handle = controller.quick_restart()
    assert handle is not None
    assert not controller.focus.show_help


def test_to_dict_reports_view_specific_sections(make_controller):
    controller = _in_focus(make_controller(), "A", "B")
    data = controller.to_dict()

    assert data["view"] == "FOCUS"
    assert data["user"]["greeting"] == "Good morning, Sam"
    assert data["totalMinutes"] == 20
    assert data["totalDisplay"] == "~0h 20m"
    assert data["focus"]["display"] == "10:00"
    assert data["celebration"] is None


class GatedLLM(FakeLLM):
    """Once armed, the next generate() blocks until released."""

    def __init__(self, *replies):
        super().__init__(*replies)
        self.armed = False
        self.entered = threading.Event()
        self.release = threading.Event()
        self.on_generate = None

    def generate(self, prompt, **kwargs):
        if self.armed:
            self.armed = False
            self.entered.set()
            assert self.release.wait(5)
        if self.on_generate:
            hook, self.on_generate = self.on_generate, None
            hook()
        return super().generate(prompt, **kwargs)


def _gated_controller(clock, *replies):
    llm = GatedLLM(*replies)
    controller = SessionController(gateway=AIGateway(llm=llm), clock=clock, rng=random.Random(3))
    controller.llm = llm
    return controller


def test_overlapping_refines_run_one_after_another(clock):
    controller = _gated_controller(clock, _plan_reply("A", "B"))
    controller.start_brain_dump()
    controller.submit_brain_dump("a, b")
    a, b = controller.tasks
    controller.llm.queue(
        {
            "tasks": [
                {"id": a.id, "title": "A", "estimatedMinutes": 10},
                {"id": b.id, "title": "B", "estimatedMinutes": 10},
                {"title": "Added first", "estimatedMinutes": 5},
            ],
            "message": "Added one.",
        },
        {
            "tasks": [{"id": b.id, "title": "B", "estimatedMinutes": 10}],
            "message": "Trimmed.",
        },
    )
    controller.llm.armed = True

    first = threading.Thread(target=controller.refine_plan, args=("add something",))
    second = threading.Thread(target=controller.refine_plan, args=("only B",))
    first.start()
    assert controller.llm.entered.wait(5)
    assert controller.state.processing
    second.start()
    time.sleep(0.05)
    assert len(controller.llm.calls) == 1  # only the organize call so far
    controller.llm.release.set()
    first.join(5)
    second.join(5)

    prompts = [c["prompt"] for c in controller.llm.calls[1:]]
    assert len(prompts) == 2
    assert "Added first" not in prompts[0]
    assert "Added first" in prompts[1]
    assert [t.title for t in controller.tasks] == ["B"]
    assert controller.state.ai_message == "Trimmed."
    assert not controller.state.processing


def test_breakdown_reply_is_dropped_if_focus_moved_on(clock):
    controller = _gated_controller(clock, _plan_reply("A", "B"))
    controller.start_brain_dump()
    controller.submit_brain_dump("a, b")
    controller.start_day()
    a, b = controller.tasks
    controller.llm.queue({"steps": [{"title": "Step", "durationMinutes": 1}]})
    controller.llm.on_generate = lambda: controller.skip(a.id)

    assert not controller.request_breakdown()

    assert controller.focus.task.id == b.id
    assert controller.focus.micro_steps == []
    assert not controller.focus.loading_steps
    assert all(t.micro_steps is None for t in controller.tasks)


def test_coaching_reply_is_dropped_if_focus_moved_on(clock):
    controller = _gated_controller(clock, _plan_reply("A", "B"))
    controller.start_brain_dump()
    controller.submit_brain_dump("a, b")
    controller.start_day()
    a = controller.tasks[0]
    controller.llm.queue("Breathe.")
    controller.llm.on_generate = lambda: controller.skip(a.id)

    assert controller.request_coaching() is None
    assert controller.focus.coaching_message is None


def test_breakdown_and_coaching_need_the_focus_view(make_controller):
    controller = make_controller()
    assert not controller.request_breakdown()
    assert controller.request_coaching() is None
    assert controller.llm.calls == []
