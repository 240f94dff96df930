import pytest
from sqlalchemy.exc import SQLAlchemyError

from colorbook.errors import ValidationError
from colorbook.jobs.models import Job
from colorbook.models.image import Image
from colorbook.models.tag import Tag
from colorbook.schemas.content import ContentItemUpdate
import colorbook.services.drafts as drafts_module
from colorbook.services.drafts import DraftStore


def finished(job_type, subject_key, result, **params):
    job = Job(job_type=job_type, subject_key=subject_key, params=params)
    job.transition("polling")
    job.transition("completed", result=result)
    return job


@pytest.fixture
def store():
    return DraftStore(source_language="zh")


def test_theme_result_creates_drafts(store):
    job = finished(
        "theme_generation",
        "batch-owls",
        {"items": [{"title": "猫头鹰", "description": "夜晚", "prompt": "owl at night"}, {"title": "雪鸮", "prompt": "snowy owl"}]},
        keyword="owls",
        aspect_ratio="3:4",
    )
    store.on_job(job)
    items = store.list(origin="batch-owls")
    assert len(items) == 2
    assert items[0].title == {"zh": "猫头鹰"}
    assert items[0].prompt == {"en": "owl at night"}
    assert items[0].aspect_ratio == "3:4"
    assert items[1].description == {}
    assert items[0].keyword == "owls"


def test_image_results_land_on_their_draft(store):
    item = store.create(title={"zh": "猫"}, prompt={"en": "cat"})
    store.on_job(finished("text_to_image", item.id, {"url": "https://cdn/line.png"}))
    store.on_job(finished("colorization", item.id, {"url": "https://cdn/color.png"}))
    assert item.line_art_url == "https://cdn/line.png"
    assert item.colored_url == "https://cdn/color.png"


def test_content_and_translation_merge(store):
    item = store.create(title={"zh": "猫"}, body={"en": "old"})
    store.on_job(finished("content_generation", item.id, {"text": "涂色提示"}))
    store.on_job(
        finished(
            "translation",
            item.id,
            {"translations": {item.id: {"en": {"title": "Cat", "body": "Tips"}, "ja": {"title": "猫", "bogus": "x"}}}},
        )
    )
    assert item.body == {"en": "Tips", "zh": "涂色提示"}
    assert item.title == {"zh": "猫", "en": "Cat", "ja": "猫"}


def test_results_for_removed_drafts_are_dropped(store):
    store.on_job(finished("text_to_image", "gone", {"url": "https://cdn/x.png"}))
    assert len(store) == 0


def test_non_completed_jobs_are_ignored(store):
    item = store.create(title={"zh": "猫"})
    job = Job(job_type="text_to_image", subject_key=item.id)
    job.transition("polling")
    job.transition("failed", error="nsfw")
    store.on_job(job)
    assert item.line_art_url is None


def test_build_params_for_each_job_type(store):
    item = store.create(
        title={"zh": "猫"},
        prompt={"en": "a cat"},
        aspect_ratio="2:3",
        provider="flux-kontext",
    )
    assert store.build_params(item.id, "content_generation") == {"keyword": "猫", "title": "猫", "prompt": "a cat"}

    t2i = store.build_params(item.id, "text_to_image", {"style": "bold lines"})
    assert t2i["prompt"] == "a cat"
    assert t2i["aspect_ratio"] == "2:3"
    assert t2i["provider"] == "flux-kontext"
    assert t2i["style"] == "bold lines"
    assert "model" not in t2i

    tr = store.build_params(item.id, "translation", {"target_languages": ["en", "ja"]})
    assert tr["kind"] == "content"
    assert tr["items"] == [{"id": item.id, "title": "猫", "prompt": "a cat"}]
    assert tr["target_languages"] == ["en", "ja"]

    item.line_art_url = "https://cdn/line.png"
    item.user_uploaded_color_url = "https://cdn/ref.png"
    color = store.build_params(item.id, "colorization")
    assert color["source_url"] == "https://cdn/line.png"
    assert color["reference_url"] == "https://cdn/ref.png"


@pytest.mark.parametrize(
    "job_type,overrides",
    [
        ("theme_generation", {}),
        ("content_generation", {}),
        ("translation", {}),
        ("text_to_image", {}),
        ("image_to_image", {}),
        ("colorization", {}),
    ],
)
def test_build_params_rejects_incomplete_drafts(store, job_type, overrides):
    item = store.create()
    with pytest.raises(ValidationError):
        store.build_params(item.id, job_type, overrides)


def test_update_merges_localized_fields(store):
    item = store.create(title={"zh": "猫"})
    store.update(item.id, ContentItemUpdate(title={"en": "Cat"}, hotness=5))
    assert item.title == {"zh": "猫", "en": "Cat"}
    assert item.hotness == 5


def test_save_inserts_then_updates(store, db):
    tag = Tag(display_name={"en": "Animals"})
    db.add(tag)
    db.commit()

    item = store.create(title={"zh": "猫"}, prompt={"en": "cat"}, tag_ids=[tag.id, "missing"])
    item.line_art_url = "https://cdn/line.png"
    store.save(item.id, db)
    row = db.get(Image, item.store_id)
    assert row.title == {"zh": "猫"}
    assert row.name == {"zh": "猫"}
    assert [t.id for t in row.tags] == [tag.id]
    assert row.additional_info["draft_id"] == item.id

    item.colored_url = "https://cdn/color.png"
    store.save(item.id, db)
    db.expire_all()
    assert db.query(Image).count() == 1
    assert db.get(Image, item.store_id).colored_url == "https://cdn/color.png"


def test_save_requires_a_title(store, db):
    item = store.create(prompt={"en": "cat"})
    with pytest.raises(ValidationError):
        store.save(item.id, db)


def test_save_with_unknown_category_fails(store, db):
    item = store.create(title={"zh": "猫"}, category_id="nope")
    with pytest.raises(ValidationError):
        store.save(item.id, db)
    assert item.store_id is None


def test_delete_removes_saved_row(store, db):
    item = store.create(title={"zh": "猫"})
    store.save(item.id, db)
    store.delete(item.id, db)
    assert store.get(item.id) is None
    assert db.get(Image, item.store_id) is None


@pytest.mark.parametrize("languages", [5, "en", ["en", 3]])
def test_translation_languages_must_be_codes(store, languages):
    item = store.create(title={"zh": "猫"})
    with pytest.raises(ValidationError):
        store.build_params(item.id, "translation", {"target_languages": languages})


def test_failed_row_delete_keeps_the_draft(store, db, monkeypatch):
    item = store.create(title={"zh": "猫"})
    store.save(item.id, db)

    def broken(db, store_id):
        raise SQLAlchemyError("database went away")

    monkeypatch.setattr(drafts_module, "delete_content_item", broken)
    with pytest.raises(SQLAlchemyError):
        store.delete(item.id, db)
    assert store.get(item.id) is item
    assert db.get(Image, item.store_id) is not None


def test_save_many_reports_each_draft(store, db):
    good = store.create(title={"zh": "猫"})
    untitled = store.create(prompt={"en": "cat"})
    orphan = store.create(title={"zh": "狗"}, category_id="nope")

    report = store.save_many([good.id, untitled.id, orphan.id, "ghost", good.id], db)

    assert report["total_saved"] == 1
    assert report["total_failed"] == 3
    assert report["saved"] == [{"id": good.id, "store_id": good.store_id}]
    assert [e["id"] for e in report["errors"]] == [untitled.id, orphan.id, "ghost"]
    assert db.query(Image).count() == 1
