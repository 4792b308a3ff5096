"""
Article endpoint tests: covers the CRUD lifecycle, slug generation,
tag filters, pagination parameters, authorization and the soft-delete
policy.

Each test creates the users and articles it needs via the API, so test
order does not matter.
"""
import pytest
from httpx import AsyncClient


async def _create_article(client: AsyncClient, headers: dict, title: str = "Test Article", tags=None) -> dict:
    resp = await client.post("/api/articles", headers=headers, json={"article": {
        "title": title,
        "description": "Test Description",
        "body": "Test Body",
        "tagList": tags or [],
    }})
    assert resp.status_code == 201, resp.text
    return resp.json()["article"]


# ---------------------------------------------------------------------------
# Infrastructure / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_diagnostic_headers_present(async_client: AsyncClient):
    """Every response carries the timing and query-count headers."""
    resp = await async_client.get("/api/articles")
    assert "x-response-time-ms" in resp.headers
    assert int(resp.headers["x-query-count"]) >= 1


# ---------------------------------------------------------------------------
# List articles
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/articles")
    assert resp.status_code == 200
    assert resp.json() == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_articles_newest_first(async_client: AsyncClient, register):
    headers = await register("lister")
    for title in ("First Post", "Second Post", "Third Post"):
        await _create_article(async_client, headers, title)

    resp = await async_client.get("/api/articles")
    data = resp.json()
    assert data["articlesCount"] == 3
    assert [a["title"] for a in data["articles"]] == ["Third Post", "Second Post", "First Post"]


@pytest.mark.asyncio
async def test_list_articles_limit_and_offset(async_client: AsyncClient, register):
    headers = await register("pager")
    for i in range(5):
        await _create_article(async_client, headers, f"Paged Article {i}")

    resp = await async_client.get("/api/articles?limit=2&offset=1")
    data = resp.json()
    assert data["articlesCount"] == 5
    assert [a["title"] for a in data["articles"]] == ["Paged Article 3", "Paged Article 2"]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["limit=abc", "limit=-3", "offset=-1", "offset=xyz&limit=", "limit=0"])
async def test_list_articles_bad_pagination_falls_back_to_defaults(async_client: AsyncClient, register, query):
    """Unparsable or negative pagination values are not errors."""
    headers = await register("lenient")
    for i in range(3):
        await _create_article(async_client, headers, f"Lenient Article {i}")

    resp = await async_client.get(f"/api/articles?{query}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["articlesCount"] == 3
    assert len(data["articles"]) == 3


@pytest.mark.asyncio
async def test_list_articles_offset_past_integer_range(async_client: AsyncClient, register):
    """An offset too large for the database is clamped, giving an empty page."""
    headers = await register("farscroller")
    await _create_article(async_client, headers, "Only Article")

    resp = await async_client.get("/api/articles?offset=99999999999999999999999")
    assert resp.status_code == 200
    assert resp.json() == {"articles": [], "articlesCount": 1}

    resp = await async_client.get("/api/articles/feed?offset=99999999999999999999999", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["articles"] == []


@pytest.mark.asyncio
async def test_list_articles_filter_by_tag(async_client: AsyncClient, register):
    headers = await register("tagger")
    await _create_article(async_client, headers, "Go Article", ["golang", "web"])
    await _create_article(async_client, headers, "Python Article", ["python"])

    resp = await async_client.get("/api/articles?tag=golang")
    data = resp.json()
    assert data["articlesCount"] == 1
    assert data["articles"][0]["title"] == "Go Article"

    resp = await async_client.get("/api/articles?tag=unknown")
    assert resp.json() == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_articles_filter_by_author(async_client: AsyncClient, register):
    alice = await register("alice")
    bob = await register("bob")
    await _create_article(async_client, alice, "Alice Writes")
    await _create_article(async_client, bob, "Bob Writes")

    resp = await async_client.get("/api/articles?author=alice")
    data = resp.json()
    assert data["articlesCount"] == 1
    assert data["articles"][0]["author"]["username"] == "alice"

    resp = await async_client.get("/api/articles?author=nobody")
    assert resp.json()["articlesCount"] == 0


@pytest.mark.asyncio
async def test_list_articles_filters_combine(async_client: AsyncClient, register):
    """Filters are ANDed together."""
    alice = await register("alice")
    bob = await register("bob")
    await _create_article(async_client, alice, "Alice Go", ["golang"])
    await _create_article(async_client, alice, "Alice Rust", ["rust"])
    await _create_article(async_client, bob, "Bob Go", ["golang"])

    resp = await async_client.get("/api/articles?tag=golang&author=alice")
    data = resp.json()
    assert data["articlesCount"] == 1
    assert data["articles"][0]["title"] == "Alice Go"


# ---------------------------------------------------------------------------
# Create + get article
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_and_get_article(async_client: AsyncClient, register):
    headers = await register("writer")
    article = await _create_article(async_client, headers, "Test Article", ["test", "golang"])
    assert article["slug"] == "test-article"
    assert article["title"] == "Test Article"
    assert article["tagList"] == ["golang", "test"]
    assert article["favorited"] is False
    assert article["favoritesCount"] == 0
    assert article["author"] == {"username": "writer", "bio": None, "image": None, "following": False}

    resp = await async_client.get("/api/articles/test-article")
    assert resp.status_code == 200
    detail = resp.json()["article"]
    assert detail["slug"] == "test-article"
    assert detail["description"] == "Test Description"
    assert detail["body"] == "Test Body"


@pytest.mark.asyncio
async def test_create_article_requires_auth(async_client: AsyncClient):
    resp = await async_client.post("/api/articles", json={"article": {
        "title": "Anonymous", "description": "d", "body": "b",
    }})
    assert resp.status_code == 401
    assert "user" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_create_article_with_bad_token(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/articles",
        headers={"Authorization": "Token not-a-jwt"},
        json={"article": {"title": "Forged", "description": "d", "body": "b"}},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_article_short_title(async_client: AsyncClient, register):
    headers = await register("shorty")
    resp = await async_client.post("/api/articles", headers=headers, json={"article": {
        "title": "ab", "description": "Test", "body": "Test",
    }})
    assert resp.status_code == 422
    assert "title" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_create_article_missing_body(async_client: AsyncClient, register):
    headers = await register("forgetful")
    resp = await async_client.post("/api/articles", headers=headers, json={"article": {
        "title": "No Body Here", "description": "Test",
    }})
    assert resp.status_code == 422
    assert "body" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_duplicate_titles_get_distinct_slugs(async_client: AsyncClient, register):
    headers = await register("twins")
    first = await _create_article(async_client, headers, "Same Title")
    second = await _create_article(async_client, headers, "Same Title")
    assert first["slug"] == "same-title"
    assert second["slug"].startswith("same-title-")
    assert second["slug"] != first["slug"]


@pytest.mark.asyncio
async def test_slug_is_url_safe(async_client: AsyncClient, register):
    headers = await register("punctuator")
    article = await _create_article(async_client, headers, "Hello World! This is a Test.")
    slug = article["slug"]
    assert slug == "hello-world-this-is-a-test"


@pytest.mark.asyncio
async def test_get_unknown_article(async_client: AsyncClient):
    resp = await async_client.get("/api/articles/non-existent")
    assert resp.status_code == 404
    assert resp.json() == {"errors": {"articles": "Invalid slug"}}


# ---------------------------------------------------------------------------
# Update article
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_article_keeps_slug(async_client: AsyncClient, register):
    """A title change updates the title but the published slug stays."""
    headers = await register("editor")
    await _create_article(async_client, headers, "Original Title")

    resp = await async_client.put("/api/articles/original-title", headers=headers, json={
        "article": {"title": "Updated Title"},
    })
    assert resp.status_code == 200
    updated = resp.json()["article"]
    assert updated["title"] == "Updated Title"
    assert updated["slug"] == "original-title"
    assert updated["description"] == "Test Description"


@pytest.mark.asyncio
async def test_update_article_replaces_tags(async_client: AsyncClient, register):
    headers = await register("retagger")
    await _create_article(async_client, headers, "Tagging Article", ["old-tag"])

    resp = await async_client.put("/api/articles/tagging-article", headers=headers, json={
        "article": {"tagList": ["new-a", "new-b"]},
    })
    assert resp.status_code == 200
    assert resp.json()["article"]["tagList"] == ["new-a", "new-b"]

    # Dropped tags stay known to the system.
    tags = (await async_client.get("/api/tags")).json()["tags"]
    assert set(tags) == {"old-tag", "new-a", "new-b"}


@pytest.mark.asyncio
async def test_update_article_by_non_owner(async_client: AsyncClient, register):
    owner = await register("owner")
    intruder = await register("intruder")
    await _create_article(async_client, owner, "Owned Article")

    resp = await async_client.put("/api/articles/owned-article", headers=intruder, json={
        "article": {"title": "Hijacked"},
    })
    assert resp.status_code == 403

    resp = await async_client.get("/api/articles/owned-article")
    assert resp.json()["article"]["title"] == "Owned Article"


@pytest.mark.asyncio
async def test_update_unknown_article(async_client: AsyncClient, register):
    headers = await register("ghostwriter")
    resp = await async_client.put("/api/articles/non-existent", headers=headers, json={
        "article": {"title": "Test"},
    })
    assert resp.status_code == 404
    assert resp.json() == {"errors": {"articles": "Invalid slug"}}


# ---------------------------------------------------------------------------
# Delete article
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_article(async_client: AsyncClient, register):
    headers = await register("deleter")
    await _create_article(async_client, headers, "To Delete", ["keepme"])

    resp = await async_client.delete("/api/articles/to-delete", headers=headers)
    assert resp.status_code == 200

    resp = await async_client.get("/api/articles/to-delete")
    assert resp.status_code == 404
    assert resp.json() == {"errors": {"articles": "Invalid slug"}}

    assert (await async_client.get("/api/articles")).json()["articlesCount"] == 0
    assert (await async_client.get("/api/tags")).json()["tags"] == ["keepme"]


@pytest.mark.asyncio
async def test_delete_unknown_article_succeeds(async_client: AsyncClient, register):
    """Deleting a slug that does not exist is a successful no-op."""
    headers = await register("tidy")
    resp = await async_client.delete("/api/articles/non-existent", headers=headers)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_delete_article_by_non_owner(async_client: AsyncClient, register):
    owner = await register("owner")
    intruder = await register("intruder")
    await _create_article(async_client, owner, "Guarded Article")

    resp = await async_client.delete("/api/articles/guarded-article", headers=intruder)
    assert resp.status_code == 403
    assert (await async_client.get("/api/articles/guarded-article")).status_code == 200


@pytest.mark.asyncio
async def test_deleted_slug_is_not_reused(async_client: AsyncClient, register):
    headers = await register("recycler")
    await _create_article(async_client, headers, "Recycled Title")
    await async_client.delete("/api/articles/recycled-title", headers=headers)

    article = await _create_article(async_client, headers, "Recycled Title")
    assert article["slug"] != "recycled-title"
