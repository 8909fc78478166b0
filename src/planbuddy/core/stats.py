"""Board statistics - pure projection over tasks, archive and the Q2 counter."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from .tasks import ArchivedTask, Quadrant, Task

DEFAULT_REWARD_EVERY = 20
DEFAULT_Q1_WARNING_PERCENT = 75


@dataclass
class Q2Progress:
    """Progress towards the next Q2 completion reward."""

    count: int
    rewards_earned: int
    progress_to_next: int
    reward_every: int = DEFAULT_REWARD_EVERY
    reward_name: str = "reward"

    @property
    def remaining(self) -> int:
        return self.reward_every - self.progress_to_next

    @property
    def just_earned(self) -> bool:
        """True when the count sits exactly on a positive multiple of the milestone."""
        return self.count > 0 and self.progress_to_next == 0

    @property
    def message(self) -> str:
        if self.just_earned:
            return f"You earned a {self.reward_name}!"
        return f"{self.remaining} more for {self.reward_name}"

    @classmethod
    def from_count(
        cls, count: int, reward_every: int = DEFAULT_REWARD_EVERY, reward_name: str = "reward"
    ) -> "Q2Progress":
        return cls(
            count=count,
            rewards_earned=count // reward_every,
            progress_to_next=count % reward_every,
            reward_every=reward_every,
            reward_name=reward_name,
        )


@dataclass
class Stats:
    """Counts and percentages for the board."""

    calculated_at: datetime
    active_total: int
    counts: dict[Quadrant, int]
    percentages: dict[Quadrant, int]
    archived_total: int
    archived_this_week: int
    completed_today: int
    q1_overloaded: bool
    q2_progress: Q2Progress
    live_total: int = 0

    def to_dict(self) -> dict:
        return {
            "calculatedAt": self.calculated_at.isoformat(),
            "activeTasks": {
                "total": self.active_total,
                **{q.value: self.counts[q] for q in Quadrant},
            },
            "percentages": {q.value: self.percentages[q] for q in Quadrant},
            "completed": {
                "total": self.archived_total,
                "thisWeek": self.archived_this_week,
                "today": self.completed_today,
            },
            "q1Overloaded": self.q1_overloaded,
            "q2Progress": {
                "count": self.q2_progress.count,
                "rewardsEarned": self.q2_progress.rewards_earned,
                "progressToNext": self.q2_progress.progress_to_next,
                "message": self.q2_progress.message,
            },
        }


def percent(part: int, total: int) -> int:
    """Whole percentage rounded half-up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (part * 200 + total) // (total * 2)


def compute_stats(
    tasks: list[Task],
    archived: list[ArchivedTask],
    q2_count: int,
    now: datetime,
    reward_every: int = DEFAULT_REWARD_EVERY,
    reward_name: str = "reward",
    q1_warning_percent: int = DEFAULT_Q1_WARNING_PERCENT,
) -> Stats:
    """
    Derive board statistics from current state.

    Percentages are rounded independently, so they need not sum to 100.

    Pure function - no I/O.
    """
    active = [t for t in tasks if t.is_active]
    total = len(active)

    counts = {q: 0 for q in Quadrant}
    for task in active:
        counts[task.quadrant] += 1
    percentages = {q: percent(counts[q], total) for q in Quadrant}

    week_ago = now - timedelta(days=7)
    archived_this_week = sum(
        1 for t in archived if t.date_archived is not None and t.date_archived > week_ago
    )

    today = now.date()
    completed_today = sum(
        1
        for t in tasks
        if t.is_completed and t.date_completed is not None and t.date_completed.date() == today
    )

    return Stats(
        calculated_at=now,
        active_total=total,
        counts=counts,
        percentages=percentages,
        archived_total=len(archived),
        archived_this_week=archived_this_week,
        completed_today=completed_today,
        q1_overloaded=percentages[Quadrant.Q1] > q1_warning_percent,
        q2_progress=Q2Progress.from_count(q2_count, reward_every, reward_name),
        live_total=len(tasks),
    )
