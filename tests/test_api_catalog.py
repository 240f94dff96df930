import io

import boto3
import pytest
from botocore.stub import ANY, Stubber
from fastapi.testclient import TestClient
from PIL import Image as PILImage

from colorbook.services.storage import ObjectStorage


@pytest.fixture
def client(app_factory):
    with TestClient(app_factory()) as c:
        yield c


@pytest.fixture
def seeded(client):
    category = client.post("/api/categories", json={"display_name": "动物", "description": {"en": "Animals"}}).json()
    tag = client.post("/api/tags", json={"display_name": {"en": "Cute", "zh": "可爱"}}).json()
    owl = client.post(
        "/api/images",
        json={
            "title": {"en": "Owl", "zh": "猫头鹰"},
            "colored_url": "https://cdn/owl.png",
            "category_id": category["id"],
            "tag_ids": [tag["id"]],
        },
    ).json()
    fox = client.post("/api/images", json={"title": "狐狸", "is_online": True}).json()
    return category, tag, owl, fox


def test_category_created_from_plain_string(client, seeded):
    category, _, _, _ = seeded
    assert category["display_name"] == {"zh": "动物"}
    assert category["label"] == "动物"
    listed = client.get("/api/categories").json()
    assert listed[0]["image_count"] == 1


def test_image_filters(client, seeded):
    category, tag, owl, fox = seeded
    assert client.get("/api/images").json()["total"] == 2

    by_cat = client.get("/api/images", params={"category_id": category["id"]}).json()
    assert [i["id"] for i in by_cat["items"]] == [owl["id"]]

    online = client.get("/api/images", params={"is_online": True}).json()
    assert [i["id"] for i in online["items"]] == [fox["id"]]

    search = client.get("/api/images", params={"search": "Owl"}).json()
    assert [i["id"] for i in search["items"]] == [owl["id"]]

    cjk = client.get("/api/images", params={"search": "狐狸"}).json()
    assert [i["id"] for i in cjk["items"]] == [fox["id"]]

    by_tag = client.get(f"/api/images/by-tag/{tag['id']}").json()
    assert by_tag["total"] == 1
    assert client.get(f"/api/images/by-category/{category['id']}").json()["total"] == 1

    tags = client.get(f"/api/images/{owl['id']}/tags", params={"lang": "zh"}).json()
    assert tags[0]["label"] == "可爱"


def test_image_paging(client, seeded):
    page = client.get("/api/images", params={"page": 2, "page_size": 1}).json()
    assert page["total_pages"] == 2
    assert len(page["items"]) == 1


def test_image_update_merges_and_retags(client, seeded):
    _, tag, owl, _ = seeded
    updated = client.put(f"/api/images/{owl['id']}", json={"title": {"ja": "フクロウ"}, "tag_ids": []}).json()
    assert updated["title"] == {"en": "Owl", "zh": "猫头鹰", "ja": "フクロウ"}
    assert updated["tags"] == []

    bad = client.put(f"/api/images/{owl['id']}", json={"tag_ids": ["nope"]})
    assert bad.status_code == 400


def test_image_requires_a_name(client):
    assert client.post("/api/images", json={"colored_url": "https://cdn/x.png"}).status_code == 400


def test_save_options(client, seeded):
    opts = client.get("/api/images/save-options", params={"lang": "en"}).json()
    assert len(opts["categories"]) == 1
    assert opts["tags"][0]["label"] == "Cute"


def test_category_delete_blocked_while_in_use(client, seeded):
    category, _, owl, _ = seeded
    assert client.delete(f"/api/categories/{category['id']}").status_code == 409
    client.delete(f"/api/images/{owl['id']}")
    assert client.delete(f"/api/categories/{category['id']}").status_code == 200
    assert client.get(f"/api/categories/{category['id']}").status_code == 404


def test_category_and_tag_stats(client, seeded):
    stats = client.get("/api/categories/stats").json()
    assert stats == {
        "total_categories": 1,
        "categories_with_images": 1,
        "categorized_images": 1,
        "uncategorized_images": 1,
    }
    tag_stats = client.get("/api/tags/stats").json()
    assert tag_stats["total_tags"] == 1
    assert tag_stats["used_tags"] == 1


def test_tag_update_and_delete(client, seeded):
    _, tag, owl, _ = seeded
    updated = client.put(f"/api/tags/{tag['id']}", json={"display_name": {"fr": "Mignon"}}).json()
    assert updated["display_name"] == {"en": "Cute", "zh": "可爱", "fr": "Mignon"}
    assert client.get(f"/api/tags/{tag['id']}").json()["usage_count"] == 1

    assert client.delete(f"/api/tags/{tag['id']}").status_code == 200
    assert client.get(f"/api/images/{owl['id']}").json()["tags"] == []


def test_posts_lifecycle(client):
    post = client.post(
        "/api/posts",
        json={"title": {"en": "Ten Spring Coloring Ideas", "zh": "十个春天涂色点子"}, "content": "正文"},
    ).json()
    assert post["slug"] == "ten-spring-coloring-ideas"
    assert post["status"] == "draft"
    assert post["content"] == {"zh": "正文"}

    dup = client.post("/api/posts", json={"title": {"en": "Ten spring coloring ideas!"}})
    assert dup.status_code == 409
    assert client.post("/api/posts", json={"title": "只有中文"}).status_code == 400

    check = client.get("/api/posts/check-slug", params={"slug": "Ten Spring Coloring Ideas"}).json()
    assert check == {"slug": "ten-spring-coloring-ideas", "available": False}
    own = client.get("/api/posts/check-slug", params={"slug": post["slug"], "exclude_id": post["id"]}).json()
    assert own["available"] is True

    published = client.put(f"/api/posts/{post['id']}", json={"status": "published"}).json()
    assert published["published_at"] is not None
    assert client.get(f"/api/posts/slug/{post['slug']}").json()["id"] == post["id"]

    other = client.post("/api/posts", json={"title": "x", "slug": "Second Post"}).json()
    stats = client.get("/api/posts/stats").json()
    assert stats == {"total": 2, "draft": 1, "published": 1, "archived": 0}
    assert client.get("/api/posts", params={"status": "published"}).json()["total"] == 1

    bulk = client.post("/api/posts/bulk-delete", json={"ids": [post["id"], other["id"], "ghost"]}).json()
    assert bulk == {"deleted": 2, "requested": 3}
    assert client.get(f"/api/posts/{post['id']}").status_code == 404


def test_translate_and_save(app_factory):
    reply = {"CAT_ID": {"en": {"name": "Animals", "description": "All kinds of animals"}}}
    with TestClient(app_factory(reply)) as client:
        category = client.post("/api/categories", json={"display_name": "动物"}).json()

        r = client.post(
            "/api/internationalization",
            json={"type": "categories", "items": [{"id": "CAT_ID", "name": "动物"}], "targetLanguages": ["en"]},
        )
        assert r.status_code == 200
        translations = r.json()["translations"]
        assert translations == {"CAT_ID": {"en": {"name": "Animals", "description": "All kinds of animals"}}}

        saved = client.post(
            "/api/internationalization/save",
            json={
                "type": "categories",
                "translations": {category["id"]: translations["CAT_ID"], "ghost": {"en": {"name": "?"}}},
            },
        ).json()
        assert saved["updated"] == 1
        assert saved["errors"] == [{"id": "ghost", "error": "not found"}]

        fresh = client.get(f"/api/categories/{category['id']}").json()
    assert fresh["display_name"] == {"zh": "动物", "en": "Animals"}
    assert fresh["description"] == {"en": "All kinds of animals"}


def test_translate_rejects_unknown_language(client):
    r = client.post(
        "/api/internationalization",
        json={"type": "tags", "items": [{"id": "t1", "name": "可爱"}], "targetLanguages": ["tlh"]},
    )
    assert r.status_code == 400


def test_upload_sniffs_and_stores(app_factory):
    s3 = boto3.client("s3", region_name="us-east-1", aws_access_key_id="t", aws_secret_access_key="t")
    storage = ObjectStorage(s3, bucket="colorbook", public_base="https://minio.example.com/colorbook", key_prefix="cb")

    buf = io.BytesIO()
    PILImage.new("RGB", (4, 3), "white").save(buf, format="JPEG")

    with Stubber(s3) as stub:
        stub.add_response(
            "put_object",
            {},
            {"Bucket": "colorbook", "Key": ANY, "Body": buf.getvalue(), "ContentType": "image/jpeg"},
        )
        with TestClient(app_factory(storage=storage)) as client:
            r = client.post(
                "/api/uploads",
                files={"file": ("sketch.jpg", buf.getvalue(), "image/jpeg")},
                data={"folder": "sketch"},
            )
            bad = client.post("/api/uploads", files={"file": ("x.txt", b"hello", "text/plain")})

    assert r.status_code == 200
    body = r.json()
    assert body["key"].startswith("cb/sketch/") and body["key"].endswith(".jpg")
    assert body["url"] == f"https://minio.example.com/colorbook/{body['key']}"
    assert (body["width"], body["height"]) == (4, 3)
    assert bad.status_code == 400


def test_upload_without_storage_is_503(client):
    r = client.post("/api/uploads", files={"file": ("x.png", b"\x89PNG", "image/png")})
    assert r.status_code == 503
