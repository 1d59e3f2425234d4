"""
博客 HTTP 接口：状态码、响应封装、权限控制
"""

from fakes import auth_headers

POST = {
    "title": "Cómo captar clientes",
    "content": "<p>Guía práctica para captar clientes en 2024.</p>",
    "author": "Ana García",
    "category": "Marketing",
    "tags": ["ventas", "seo"],
    "published": True,
    "meta_keywords": "clientes, ventas",
}


async def create(client, **overrides):
    body = {**POST, **overrides}
    return await client.post("/api/blog/posts", json=body, headers=auth_headers())


async def test_health_and_root(client):
    health = await client.get("/api/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    root = await client.get("/")
    assert root.json()["endpoints"]["blog"] == "/api/blog/posts"


async def test_create_returns_full_post(client):
    resp = await create(client)

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    post = body["data"]
    assert post["slug"] == "cmo-captar-clientes"
    assert post["published"] is True
    assert post["category"]["slug"] == "marketing"
    assert post["author"]["name"] == "Ana García"
    assert post["tags"] == ["seo", "ventas"]
    assert post["seo"]["keywords"] == ["clientes", "ventas"]
    assert post["seo"]["meta_title"] == POST["title"]


async def test_create_requires_token(client):
    resp = await client.post("/api/blog/posts", json=POST)
    assert resp.status_code == 401
    assert resp.json()["code"] == "MISSING_TOKEN"


async def test_create_rejects_invalid_token(client):
    resp = await client.post("/api/blog/posts", json=POST, headers=auth_headers("forged"))
    assert resp.status_code == 401
    assert resp.json()["code"] == "INVALID_TOKEN"


async def test_create_requires_permission(client):
    resp = await client.post("/api/blog/posts", json=POST, headers=auth_headers("viewer-token"))
    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == "INSUFFICIENT_PERMISSIONS"
    assert body["details"]["required_permission"] == "create:posts"


async def test_create_missing_fields_is_validation_error(client):
    resp = await client.post(
        "/api/blog/posts",
        json={"title": "Sin cuerpo"},
        headers=auth_headers(),
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"
    assert {d["field"] for d in body["details"]} == {"content", "author"}


async def test_blank_title_is_validation_error(client):
    resp = await create(client, title="   ")
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


async def test_duplicate_slug_gets_suffix(client):
    first = await create(client, slug="captar-clientes")
    second = await create(client, slug="captar-clientes")
    assert first.json()["data"]["slug"] == "captar-clientes"
    assert second.json()["data"]["slug"] == "captar-clientes-2"


async def test_get_post_and_not_found(client):
    await create(client)

    resp = await client.get("/api/blog/posts/cmo-captar-clientes")
    assert resp.status_code == 200
    assert resp.json()["data"]["content"] == POST["content"]

    missing = await client.get("/api/blog/posts/no-existe")
    assert missing.status_code == 404
    assert missing.json()["code"] == "POST_NOT_FOUND"


async def test_drafts_are_hidden_from_public_api(client):
    await create(client, title="Borrador", published=False)

    assert (await client.get("/api/blog/posts/borrador")).status_code == 404
    assert (await client.get("/api/blog/posts/borrador/related")).status_code == 404
    listing = (await client.get("/api/blog/posts")).json()["data"]
    assert listing["posts"] == []

    admin = await client.get("/api/blog/admin/posts", headers=auth_headers("viewer-token"))
    assert admin.status_code == 200
    assert [p["slug"] for p in admin.json()["data"]["posts"]] == ["borrador"]


async def test_list_posts_pagination(client):
    for i in range(3):
        await create(client, title=f"Post {i}")

    resp = await client.get("/api/blog/posts", params={"page": 1, "limit": 2})
    data = resp.json()["data"]
    assert len(data["posts"]) == 2
    assert "content" not in data["posts"][0]
    assert data["pagination"]["total"] == 3
    assert data["pagination"]["has_next"] is True


async def test_list_posts_rejects_bad_page(client):
    resp = await client.get("/api/blog/posts", params={"page": 0})
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "page"


async def test_update_post(client):
    await create(client)

    resp = await client.put(
        "/api/blog/posts/cmo-captar-clientes",
        json={"title": "Título nuevo", "tags": ["crm"]},
        headers=auth_headers(),
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "Título nuevo"
    assert data["slug"] == "cmo-captar-clientes"
    assert data["tags"] == ["crm"]

    missing = await client.put(
        "/api/blog/posts/no-existe", json={"title": "x"}, headers=auth_headers()
    )
    assert missing.status_code == 404


async def test_update_requires_edit_permission(client):
    await create(client)
    resp = await client.put(
        "/api/blog/posts/cmo-captar-clientes",
        json={"title": "x"},
        headers=auth_headers("viewer-token"),
    )
    assert resp.status_code == 403


async def test_delete_post(client):
    await create(client)

    resp = await client.delete("/api/blog/posts/cmo-captar-clientes", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    again = await client.delete("/api/blog/posts/cmo-captar-clientes", headers=auth_headers())
    assert again.status_code == 404


async def test_views_categories_and_related(client):
    await create(client, title="Uno")
    await create(client, title="Dos")

    views = await client.post("/api/blog/posts/uno/views")
    assert views.status_code == 200
    assert (await client.get("/api/blog/posts/uno")).json()["data"]["views"] == 1
    assert (await client.post("/api/blog/posts/no-existe/views")).status_code == 404

    categories = (await client.get("/api/blog/categories")).json()["data"]
    assert categories == [
        {"id": 1, "name": "Marketing", "slug": "marketing", "description": "Marketing 分类", "post_count": 2}
    ]

    related = (await client.get("/api/blog/posts/uno/related")).json()["data"]
    assert [p["slug"] for p in related] == ["dos"]
    assert (await client.get("/api/blog/posts/no-existe/related")).status_code == 404
