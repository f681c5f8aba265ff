from datetime import timedelta

from aspbot.handlers.user.leaderboard import _cohort_arg, render_leaderboard
from aspbot.handlers.user.signin import signed_out_text
from aspbot.handlers.user.start import rules_text
from aspbot.services.leaderboard import LeaderboardRow
from aspbot.services.records import SessionRecord


def _row(cid, name, minutes, *, overridden=False):
    return LeaderboardRow(
        cadet_id=cid,
        name=name,
        cohort="2C",
        group="G1",
        computed_minutes=minutes,
        total_minutes=minutes,
        overridden=overridden,
        reward_days=minutes // 240,
    )


def test_render_marks_caller_and_escapes_names():
    rows = [_row("a", "<Alice>", 500), _row("b", "Bob", 30)]
    text = render_leaderboard(rows, cohort=None, me_cadet_id="b")

    assert "&lt;Alice&gt;" in text
    assert "🥇" in text and "🥈" in text
    assert "8h 20m" in text
    assert "Bob · 2C · G1 — <b>0h 30m</b> · 0d <b>(you)</b>" in text
    assert "Your rank:</b> 2" in text
    assert "<code>" not in text


def test_render_admin_view_shows_ids_and_override_marker():
    text = render_leaderboard([_row("a", "Alice", 1000, overridden=True)], cohort="2C", me_cadet_id=None, show_ids=True)
    assert "— 2C" in text
    assert "<code>a</code>" in text
    assert "</b>*" in text
    assert "* admin override" in text


def test_render_empty_and_unranked():
    assert "No minutes logged yet." in render_leaderboard([], cohort=None, me_cadet_id="x")
    text = render_leaderboard([_row("a", "Alice", 10)], cohort=None, me_cadet_id="x")
    assert "unranked" in text


def test_cohort_arg(settings):
    assert _cohort_arg("2c", settings) == "2C"
    assert _cohort_arg("all", settings) is None
    assert _cohort_arg("9Z", settings) is None
    assert _cohort_arg(None, settings) is None


def test_rules_text_follows_flags(settings):
    assert "blocked after 2h 0m" in rules_text(settings)
    assert "1 reward day per 4h 0m" in rules_text(settings)


def test_signed_out_text_is_clamped_to_session_cap(program, et):
    start = et(2025, 9, 15, 19, 30)
    late = SessionRecord(id="s1", cadet_id="c1", sign_in=start, sign_out=start + timedelta(hours=3))
    assert "<b>2h 0m</b>" in signed_out_text(late, program)

    short = SessionRecord(id="s2", cadet_id="c1", sign_in=start, sign_out=start + timedelta(minutes=45, seconds=50))
    assert "<b>0h 45m</b>" in signed_out_text(short, program)
