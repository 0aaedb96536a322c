"""Leaderboard report generation for Harbour Battles."""

from __future__ import annotations

from tabulate import tabulate

from harbour_battles.models import Project

LeaderboardRow = tuple[Project, int, int]


def build_leaderboard_rows(rows: list[LeaderboardRow]) -> list[tuple[int, str, str, int, int, int]]:
    """Flatten leaderboard rows into (rank, title, rating, wins, losses, shown)."""
    return [
        (rank, project.title, f"{project.rating:.1f}", wins, losses, project.exposure_count)
        for rank, (project, wins, losses) in enumerate(rows, start=1)
    ]


def generate_leaderboard_report(
    rows: list[LeaderboardRow],
    title: str = "Leaderboard",
    description: str | None = None,
) -> str:
    """Generate a markdown leaderboard.

    Args:
        rows: (project, wins, losses) sorted by rating descending.
        title: Report title (markdown heading).
        description: Optional description line below title.

    Returns:
        Markdown report content.
    """
    lines = [f"# {title}", ""]
    if description:
        lines.extend([description, ""])
    if not rows:
        lines.append("_No projects yet._")
        return "\n".join(lines)

    lines.append(
        tabulate(
            build_leaderboard_rows(rows),
            headers=("Rank", "Project", "Rating", "Wins", "Losses", "Shown"),
            tablefmt="github",
        )
    )
    return "\n".join(lines)
