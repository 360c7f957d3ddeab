"""Tests for kanban grouping and analytics."""

from __future__ import annotations

from crmview.grouping import Analytics, compute_analytics, group_by_status, status_counts
from crmview.models import Contact, CrmItem, Priority, RecordKind, Task

TODAY = "2025-01-01"


def _task(task_id, status):
    return Task(id=task_id, text=task_id, status=status)


def _contact(n):
    return Contact(id=f"c{n}", name=f"Person {n}", email=f"p{n}@x.com")


class TestGroupByStatus:

    def test_buckets_in_input_order(self):
        tasks = [_task("t1", "Done"), _task("t2", "Todo"), _task("t3", "Done")]
        groups = group_by_status(tasks)
        assert list(groups) == ["Todo", "InProgress", "Done"]
        assert [t.id for t in groups["Done"]] == ["t1", "t3"]
        assert groups["InProgress"] == []

    def test_unknown_status_dropped_from_board(self):
        tasks = [_task("t1", "Blocked"), _task("t2", "Todo")]
        groups = group_by_status(tasks)
        assert sum(len(v) for v in groups.values()) == 1
        assert compute_analytics(tasks, today=TODAY).total == 2

    def test_loaded_unknown_status_stays_off_the_board(self):
        tasks = [
            Task.from_dict({"id": "t1", "text": "Wait", "status": "Blocked"}),
            Task.from_dict({"id": "t2", "text": "Go", "status": "todo"}),
        ]
        assert tasks[0].status == "Blocked"
        groups = group_by_status(tasks)
        assert all("t1" not in [t.id for t in bucket] for bucket in groups.values())
        assert [t.id for t in groups["Todo"]] == ["t2"]
        assert status_counts(tasks) == {"total": 2, "Todo": 1, "InProgress": 0, "Done": 0}
        assert compute_analytics(tasks, today=TODAY).total == 2

    def test_custom_buckets(self):
        accounts = [
            CrmItem(id="a1", company="A", status="Warm"),
            CrmItem(id="a2", company="B", status="Cold"),
        ]
        groups = group_by_status(accounts, ["Cold", "Warm"])
        assert [a.id for a in groups["Cold"]] == ["a2"]

    def test_status_counts(self):
        tasks = [_task("t1", "Done"), _task("t2", "Todo"), _task("t3", "Todo")]
        assert status_counts(tasks) == {"total": 3, "Todo": 2, "InProgress": 0, "Done": 1}


class TestComputeAnalytics:

    def test_account_figures(self):
        records = [
            CrmItem(id="a1", company="A", kind=RecordKind.INVESTOR, check_size=100,
                    priority=Priority.HIGH, next_action_date="2024-06-01",
                    contacts=[_contact(1), _contact(2)]),
            CrmItem(id="a2", company="B", kind=RecordKind.CUSTOMER, deal_value=50,
                    next_action_date="2025-06-01"),
            CrmItem(id="a3", company="C", kind=RecordKind.PARTNER),
        ]
        assert compute_analytics(records, today=TODAY) == Analytics(
            total=3,
            high_priority_count=1,
            overdue_count=1,
            total_value=150,
            with_contacts_count=1,
            avg_contacts_per_record=0.7,
        )

    def test_empty_set(self):
        result = compute_analytics([], today=TODAY)
        assert result.total == 0
        assert result.avg_contacts_per_record == 0.0
        assert result.total_value == 0

    def test_average_rounds_half_up(self):
        records = [CrmItem(id="a1", company="A", contacts=[_contact(1)])]
        records += [CrmItem(id=f"a{i}", company=f"X{i}") for i in range(2, 5)]
        assert compute_analytics(records, today=TODAY).avg_contacts_per_record == 0.3

    def test_tasks_have_no_value(self):
        tasks = [_task("t1", "Todo")]
        result = compute_analytics(tasks, today=TODAY)
        assert result.total_value == 0
        assert result.with_contacts_count == 0
