"""Unit tests for the task engine."""

import pytest
from pydantic import ValidationError

from knecht.errors import (
    AlreadyDeliveredError,
    AlreadyDoneError,
    BlockedError,
    CycleDetectedError,
    EdgeNotFoundError,
    InvalidEdgeError,
    TaskNotFoundError,
)
from knecht.storage.blockers import BlockerGraph
from knecht.storage.friction import FrictionLog
from knecht.storage.repository import TaskRepository
from knecht.tasks.engine import TaskEngine
from knecht.tasks.models import FrictionSource, Task, TaskStatus


@pytest.fixture
def engine(tmp_path):
    """Engine over an initialized temp directory."""
    root = tmp_path / ".knecht"
    engine = TaskEngine(
        repository=TaskRepository(root),
        graph=BlockerGraph(root / "blockers"),
        friction_log=FrictionLog(root / "friction.jsonl"),
    )
    engine.init()
    return engine


def put(engine: TaskEngine, task_id: str, status: TaskStatus = TaskStatus.OPEN, **kwargs) -> Task:
    """Store a task with a fixed id."""
    task = Task(id=task_id, title=kwargs.pop("title", f"Task {task_id}"), status=status, **kwargs)
    engine.repository.save(task)
    return task


class TestInit:
    """Tests for init()."""

    def test_creates_layout(self, engine):
        """Test directories and files exist after init."""
        assert engine.repository.tasks_dir.is_dir()
        assert engine.graph.path.is_file()

    def test_idempotent(self, engine):
        """Test init keeps existing data."""
        put(engine, "aaa")
        engine.graph.add_edge("aaa", "bbb")
        engine.init()
        assert engine.repository.exists("aaa")
        assert engine.graph.blockers_of("aaa") == {"bbb"}


class TestSuggestNext:
    """Tests for suggest_next()."""

    def test_no_tasks(self, engine):
        """Test nothing to suggest in an empty repository."""
        assert engine.suggest_next() is None

    def test_tie_break_by_id(self, engine):
        """Test equal friction picks the smaller id."""
        put(engine, "bbb")
        put(engine, "aaa")
        assert engine.suggest_next().id == "aaa"

    def test_highest_friction(self, engine):
        """Test the most painful open task is suggested."""
        put(engine, "aaa", friction_score=1)
        put(engine, "bbb", friction_score=4)
        put(engine, "ccc", friction_score=2)
        assert engine.suggest_next().id == "bbb"

    def test_blocked_candidate_substituted(self, engine):
        """Test a blocked top task is replaced by its blocker."""
        put(engine, "aaa", friction_score=5)
        put(engine, "bbb", friction_score=2)
        engine.block("aaa", "bbb")
        assert engine.suggest_next().id == "bbb"

    def test_delivered_outranks_open(self, engine):
        """Test delivered tasks come before any open task."""
        put(engine, "aaa")
        put(engine, "bbb", TaskStatus.DELIVERED)
        put(engine, "ccc", friction_score=9)
        assert engine.suggest_next().id == "bbb"

    def test_delivered_ranked_among_themselves(self, engine):
        """Test friction orders delivered tasks."""
        put(engine, "aaa", TaskStatus.DELIVERED)
        put(engine, "bbb", TaskStatus.DELIVERED, friction_score=1)
        assert engine.suggest_next().id == "bbb"

    def test_delivered_skips_blocker_resolution(self, engine):
        """Test a delivered task is returned even with open blockers."""
        put(engine, "aaa", TaskStatus.DELIVERED)
        put(engine, "bbb")
        engine.block("aaa", "bbb")
        assert engine.suggest_next().id == "aaa"

    def test_claimed_and_done_skipped(self, engine):
        """Test only open tasks are candidates."""
        put(engine, "aaa", TaskStatus.CLAIMED, friction_score=3)
        put(engine, "bbb", TaskStatus.DONE, friction_score=3)
        put(engine, "ccc")
        assert engine.suggest_next().id == "ccc"

    def test_all_claimed(self, engine):
        """Test no suggestion when nothing is open or delivered."""
        put(engine, "aaa", TaskStatus.CLAIMED)
        assert engine.suggest_next() is None

    def test_parent_blocked_by_subtasks(self, engine):
        """Test unblocked subtasks are preferred over their painful parent."""
        put(engine, "p00", friction_score=3)
        for sub in ("s01", "s02", "s03"):
            put(engine, sub)
            engine.block("p00", sub)
        engine.block("s02", "s01")
        engine.block("s03", "s01")
        engine.complete("s01")

        assert engine.suggest_next().id in {"s02", "s03"}

    def test_orphan_blocker_ignored(self, engine):
        """Test an edge to a deleted task does not block."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.block("aaa", "bbb")
        engine.delete("bbb")
        assert engine.suggest_next().id == "aaa"

    def test_cycle_reported(self, engine):
        """Test a cyclic graph raises instead of hanging."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.block("aaa", "bbb")
        engine.block("bbb", "aaa")
        with pytest.raises(CycleDetectedError):
            engine.suggest_next()

    def test_deterministic(self, engine):
        """Test repeated calls give the same answer."""
        for task_id in ("k1", "k2", "k3", "k4"):
            put(engine, task_id)
        engine.block("k1", "k3")
        engine.block("k1", "k4")
        assert {engine.suggest_next().id for _ in range(3)} == {"k3"}


class TestClaim:
    """Tests for claim()."""

    def test_claim(self, engine):
        """Test claiming an open task."""
        put(engine, "aaa")
        task = engine.claim("aaa")
        assert task.status == TaskStatus.CLAIMED
        assert engine.repository.load("aaa").status == TaskStatus.CLAIMED

    def test_claim_blocked_then_unblocked(self, engine):
        """Test claim fails until the blocker is done."""
        put(engine, "xxx")
        put(engine, "yyy")
        engine.block("xxx", "yyy")

        with pytest.raises(BlockedError) as exc_info:
            engine.claim("xxx")
        assert exc_info.value.blocker_ids == ["yyy"]
        assert engine.repository.load("xxx").status == TaskStatus.OPEN

        engine.complete("yyy")
        assert engine.claim("xxx").status == TaskStatus.CLAIMED

    def test_claim_lists_all_open_blockers(self, engine):
        """Test every open blocker is reported."""
        put(engine, "xxx")
        put(engine, "b1")
        put(engine, "b2", friction_score=1)
        put(engine, "b3", TaskStatus.DONE)
        for blocker in ("b1", "b2", "b3"):
            engine.block("xxx", blocker)

        with pytest.raises(BlockedError) as exc_info:
            engine.claim("xxx")
        assert exc_info.value.blocker_ids == ["b2", "b1"]

    def test_claimed_blocker_does_not_block(self, engine):
        """Test a claimed blocker counts as resolved."""
        put(engine, "xxx")
        put(engine, "yyy", TaskStatus.CLAIMED)
        engine.block("xxx", "yyy")
        assert engine.claim("xxx").status == TaskStatus.CLAIMED

    def test_claim_missing(self, engine):
        """Test claiming an absent task."""
        with pytest.raises(TaskNotFoundError):
            engine.claim("nope")

    def test_claim_done(self, engine):
        """Test done tasks cannot be claimed."""
        put(engine, "aaa", TaskStatus.DONE)
        with pytest.raises(AlreadyDoneError):
            engine.claim("aaa")


class TestDeliver:
    """Tests for deliver()."""

    def test_deliver(self, engine):
        """Test delivering a task."""
        put(engine, "aaa", TaskStatus.CLAIMED)
        assert engine.deliver("aaa").status == TaskStatus.DELIVERED
        assert engine.repository.load("aaa").status == TaskStatus.DELIVERED

    def test_deliver_twice(self, engine):
        """Test delivering twice fails."""
        put(engine, "aaa")
        engine.deliver("aaa")
        with pytest.raises(AlreadyDeliveredError):
            engine.deliver("aaa")

    def test_deliver_done(self, engine):
        """Test delivering a done task fails."""
        put(engine, "aaa", TaskStatus.DONE)
        with pytest.raises(AlreadyDoneError):
            engine.deliver("aaa")


class TestComplete:
    """Tests for complete() and the skip penalty."""

    def test_skipping_head_penalizes_it(self, engine):
        """Test completing bbb while aaa is open penalizes aaa."""
        put(engine, "aaa")
        put(engine, "bbb")

        done = engine.complete("bbb")

        assert done.status == TaskStatus.DONE
        assert engine.repository.load("bbb").status == TaskStatus.DONE
        head = engine.repository.load("aaa")
        assert head.friction_score == 1
        assert head.description == "Skip: bbb completed instead"

    def test_completing_head_is_free(self, engine):
        """Test completing aaa leaves bbb untouched."""
        put(engine, "aaa")
        put(engine, "bbb")

        engine.complete("aaa")

        other = engine.repository.load("bbb")
        assert other.friction_score == 0
        assert other.description is None
        assert engine.repository.load("aaa").status == TaskStatus.DONE

    def test_penalty_appends_to_description(self, engine):
        """Test prior description is preserved."""
        put(engine, "aaa", description="Original description")
        put(engine, "bbb")
        engine.complete("bbb")

        description = engine.repository.load("aaa").description
        assert "Original description" in description
        assert description.count("Skip: bbb completed instead") == 1

    def test_one_note_per_skip(self, engine):
        """Test each skipping completion adds exactly one note and point."""
        put(engine, "aaa")
        put(engine, "bbb")
        put(engine, "ccc")
        engine.complete("bbb")
        engine.complete("ccc")

        head = engine.repository.load("aaa")
        assert head.friction_score == 2
        assert head.description.count("Skip:") == 2

    def test_penalty_logged(self, engine):
        """Test the skip is recorded in the friction log."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.complete("bbb")

        entries = engine.friction_log.entries("aaa")
        assert len(entries) == 1
        assert entries[0].source == FrictionSource.SKIP

    def test_completing_claimed_task_penalizes_head(self, engine):
        """Test a claimed task still skips the open head."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.claim("bbb")
        engine.complete("bbb")
        assert engine.repository.load("aaa").friction_score == 1

    def test_completing_claimed_head_candidate(self, engine):
        """Test a claimed task with the smallest id is not the head."""
        put(engine, "aaa", TaskStatus.CLAIMED)
        put(engine, "bbb")
        engine.complete("aaa")
        assert engine.repository.load("bbb").friction_score == 1

    def test_no_other_open_task(self, engine):
        """Test no penalty when nothing else is open."""
        put(engine, "aaa", TaskStatus.DONE)
        put(engine, "bbb")
        engine.complete("bbb")
        assert engine.repository.load("aaa").friction_score == 0

    def test_complete_twice(self, engine):
        """Test done is terminal and triggers no further penalty."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.complete("bbb")

        with pytest.raises(AlreadyDoneError):
            engine.complete("bbb")
        assert engine.repository.load("aaa").friction_score == 1

    def test_completion_reports_penalty(self, engine):
        """Test the returned completion carries the persisted penalty."""
        put(engine, "aaa")
        put(engine, "bbb")

        completion = engine.complete_with_penalty("bbb")

        assert completion.task.status == TaskStatus.DONE
        assert completion.penalty is not None
        assert completion.penalty.task.id == "aaa"
        assert completion.penalty.note == "Skip: bbb completed instead"
        assert completion.penalty.task == engine.repository.load("aaa")

    def test_completion_without_penalty(self, engine):
        """Test completing the head reports no penalty."""
        put(engine, "aaa")
        put(engine, "bbb")
        assert engine.complete_with_penalty("aaa").penalty is None

    def test_complete_missing(self, engine):
        """Test completing an absent task."""
        with pytest.raises(TaskNotFoundError):
            engine.complete("nope")

    def test_head_of_queue(self, engine):
        """Test head_of_queue reads from the repository."""
        put(engine, "bbb")
        put(engine, "aaa", TaskStatus.CLAIMED)
        assert engine.head_of_queue().id == "bbb"


class TestAddFriction:
    """Tests for add_friction()."""

    def test_increments_and_documents(self, engine):
        """Test friction is counted and the note appended."""
        put(engine, "aaa", description="Initial description")
        engine.add_friction("aaa", "First pain instance")
        task = engine.add_friction("aaa", "Second pain instance")

        assert task.friction_score == 2
        assert "Initial description" in task.description
        assert "First pain instance" in task.description
        assert "Second pain instance" in task.description
        assert engine.repository.load("aaa") == task

    def test_logged(self, engine):
        """Test each report is audited."""
        put(engine, "aaa")
        engine.add_friction("aaa", "slow build")
        entries = engine.friction_log.entries("aaa")
        assert [(e.source, e.description) for e in entries] == [(FrictionSource.REPORT, "slow build")]

    def test_blank_note_rejected(self, engine):
        """Test a note is required."""
        put(engine, "aaa")
        with pytest.raises(ValueError):
            engine.add_friction("aaa", "  ")

    def test_missing(self, engine):
        """Test friction on an absent task."""
        with pytest.raises(TaskNotFoundError):
            engine.add_friction("nope", "note")

    def test_raises_priority(self, engine):
        """Test friction changes what is suggested next."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.add_friction("bbb", "keeps hurting")
        assert engine.suggest_next().id == "bbb"

    def test_without_friction_log(self, tmp_path):
        """Test the engine works without an audit log."""
        root = tmp_path / ".knecht"
        engine = TaskEngine(TaskRepository(root), BlockerGraph(root / "blockers"))
        engine.repository.save(Task(id="aaa", title="A"))
        assert engine.add_friction("aaa", "x").friction_score == 1


class TestRecords:
    """Tests for add/update/delete/show/list."""

    def test_add(self, engine):
        """Test creating a task."""
        task = engine.add("Write parser", "Details", "Tests pass")
        assert task.status == TaskStatus.OPEN
        assert task.friction_score == 0
        assert task.id.isalnum()
        assert engine.repository.load(task.id) == task

    def test_add_generates_distinct_ids(self, engine):
        """Test ids do not collide."""
        ids = {engine.add(f"Task {i}").id for i in range(20)}
        assert len(ids) == 20

    def test_add_blank_title(self, engine):
        """Test blank titles are rejected."""
        with pytest.raises(ValidationError):
            engine.add("   ")

    def test_add_empty_optional_fields(self, engine):
        """Test empty strings become unset fields."""
        task = engine.add("T", "", "")
        assert task.description is None
        assert task.acceptance_criteria is None

    def test_update_title_only(self, engine):
        """Test only given fields change."""
        put(engine, "aaa", TaskStatus.CLAIMED, description="keep", friction_score=2)
        task = engine.update("aaa", title="New title")
        assert task.title == "New title"
        assert task.description == "keep"
        assert task.status == TaskStatus.CLAIMED
        assert task.friction_score == 2

    def test_update_clear_fields(self, engine):
        """Test empty strings clear description and criteria."""
        put(engine, "aaa", description="old", acceptance_criteria="old")
        task = engine.update("aaa", description="", acceptance_criteria="")
        assert task.description is None
        assert task.acceptance_criteria is None

    def test_update_only_affects_target(self, engine):
        """Test other tasks are untouched."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.update("aaa", description="changed")
        assert engine.repository.load("bbb").description is None

    def test_update_requires_a_field(self, engine):
        """Test update with nothing to change fails."""
        put(engine, "aaa")
        with pytest.raises(ValueError):
            engine.update("aaa")

    def test_update_blank_title(self, engine):
        """Test blank title rejected on update."""
        put(engine, "aaa")
        with pytest.raises(ValueError):
            engine.update("aaa", title=" ")

    def test_update_missing(self, engine):
        """Test updating an absent task."""
        with pytest.raises(TaskNotFoundError):
            engine.update("nope", title="x")

    def test_delete_keeps_edges(self, engine):
        """Test deletion does not cascade to blocker edges."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.block("aaa", "bbb")
        engine.delete("bbb")
        assert engine.graph.blockers_of("aaa") == {"bbb"}

    def test_delete_missing(self, engine):
        """Test deleting an absent task."""
        with pytest.raises(TaskNotFoundError):
            engine.delete("nope")

    def test_show(self, engine):
        """Test show resolves related tasks and orphans."""
        put(engine, "aaa")
        put(engine, "bbb", TaskStatus.DONE)
        put(engine, "ccc")
        put(engine, "ddd")
        engine.block("aaa", "bbb")
        engine.block("aaa", "ccc")
        engine.block("ddd", "aaa")
        engine.delete("ccc")

        detail = engine.show("aaa")
        assert detail.task.id == "aaa"
        assert [(i, t.status if t else None) for i, t in detail.blockers] == [
            ("bbb", TaskStatus.DONE),
            ("ccc", None),
        ]
        assert [i for i, _ in detail.blocks] == ["ddd"]

    def test_show_missing(self, engine):
        """Test showing an absent task."""
        with pytest.raises(TaskNotFoundError):
            engine.show("nope")

    def test_list_hides_done(self, engine):
        """Test list ordering and done filtering."""
        put(engine, "aaa")
        put(engine, "bbb", friction_score=1)
        put(engine, "ccc", TaskStatus.DONE)

        assert [t.id for t in engine.list_tasks()] == ["bbb", "aaa"]
        assert [t.id for t in engine.list_tasks(include_done=True)] == ["bbb", "aaa", "ccc"]


class TestBlockers:
    """Tests for block() and unblock()."""

    def test_block_requires_both_tasks(self, engine):
        """Test blocking with a missing task fails."""
        put(engine, "aaa")
        with pytest.raises(TaskNotFoundError):
            engine.block("aaa", "nope")
        with pytest.raises(TaskNotFoundError):
            engine.block("nope", "aaa")

    def test_block_self(self, engine):
        """Test a task cannot block itself."""
        put(engine, "aaa")
        with pytest.raises(InvalidEdgeError):
            engine.block("aaa", "aaa")

    def test_unblock(self, engine):
        """Test removing a relationship unblocks the task."""
        put(engine, "aaa")
        put(engine, "bbb")
        engine.block("aaa", "bbb")
        engine.unblock("aaa", "bbb")
        assert engine.claim("aaa").status == TaskStatus.CLAIMED

    def test_unblock_missing(self, engine):
        """Test removing an absent relationship fails."""
        with pytest.raises(EdgeNotFoundError):
            engine.unblock("aaa", "bbb")
