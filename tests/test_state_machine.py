import pytest

from colorbook.jobs.models import Job, check_job_type
from colorbook.errors import ValidationError
from colorbook.services.state_machine import ensure_transition, has_usable_result, normalize_progress


@pytest.mark.parametrize(
    "current,target",
    [
        ("created", "polling"),
        ("created", "failed"),
        ("created", "cancelled"),
        ("polling", "polling"),
        ("polling", "completed"),
        ("polling", "timed_out"),
    ],
)
def test_allowed_transitions(current, target):
    ensure_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("created", "completed"),
        ("completed", "polling"),
        ("failed", "polling"),
        ("cancelled", "completed"),
        ("timed_out", "failed"),
        ("polling", "created"),
    ],
)
def test_rejected_transitions(current, target):
    with pytest.raises(ValueError):
        ensure_transition(current, target)


def test_unknown_state_rejected():
    with pytest.raises(ValueError):
        ensure_transition("queued", "polling")


@pytest.mark.parametrize(
    "raw,expected",
    [
        (0.5, 50),
        ("0.25", 25),
        (1, 100),
        ("1.00", 100),
        (0, 0),
        (45, 45),
        ("45%", 45),
        (72.6, 73),
        (150, 100),
        (-3, 0),
        (None, None),
        ("", None),
        ("soon", None),
        (True, None),
    ],
)
def test_normalize_progress(raw, expected):
    assert normalize_progress(raw) == expected


def test_usable_result_depends_on_job_type():
    assert has_usable_result("text_to_image", {"url": "https://cdn/x.png"})
    assert not has_usable_result("text_to_image", {"url": "  "})
    assert not has_usable_result("colorization", None)
    assert has_usable_result("theme_generation", {"items": [{"title": "t"}]})
    assert not has_usable_result("theme_generation", {"items": []})
    assert not has_usable_result("translation", {"translations": {}})


def test_progress_only_moves_forward():
    job = Job(job_type="text_to_image", subject_key="c1")
    assert job.record_progress(40)
    assert not job.record_progress(20)
    assert not job.record_progress(None)
    assert job.progress == 40


def test_completion_sets_full_progress_and_clears_error():
    job = Job(job_type="text_to_image", subject_key="c1")
    job.transition("polling")
    job.transition("completed", result={"url": "u"})
    assert job.progress == 100
    assert job.error is None
    assert job.finished_at is not None


def test_cancel_keeps_no_error():
    job = Job(job_type="colorization", subject_key="c1")
    job.transition("cancelled", error="ignored")
    assert job.error is None
    assert job.is_terminal


def test_check_job_type_accepts_dashes():
    assert check_job_type("text-to-image") == "text_to_image"
    with pytest.raises(ValidationError):
        check_job_type("video")
