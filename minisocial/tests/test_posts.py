import pytest
from httpx import AsyncClient

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

@pytest.mark.asyncio
async def test_create_post(test_client: AsyncClient, register_user):
    """Test creating a text post"""
    user = await register_user("postuser")

    response = await test_client.post(
        "/api/posts",
        data={"text": "This is a test post"},
        headers=user["headers"],
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Post created successfully"
    post = data["post"]
    assert post["text"] == "This is a test post"
    assert post["userId"] == user["id"]
    assert post["username"] == "postuser"
    assert post["imageUrl"] is None
    assert post["likes"] == []
    assert post["comments"] == []
    assert post["likeCount"] == 0
    assert post["commentCount"] == 0

@pytest.mark.asyncio
async def test_create_post_requires_authentication(test_client: AsyncClient):
    response = await test_client.post("/api/posts", data={"text": "anonymous"})

    assert response.status_code == 401
    assert response.json()["success"] is False

@pytest.mark.asyncio
async def test_create_post_without_content(test_client: AsyncClient, register_user):
    user = await register_user("emptyposter")

    response = await test_client.post("/api/posts", data={"text": "  "}, headers=user["headers"])

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["message"] == "Post must contain either text or image"
    assert data["errors"]

@pytest.mark.asyncio
async def test_create_post_with_image(test_client: AsyncClient, register_user, upload_dir):
    user = await register_user("photographer")

    response = await test_client.post(
        "/api/posts",
        files={"image": ("cat.png", PNG_BYTES, "image/png")},
        headers=user["headers"],
    )

    assert response.status_code == 201
    image_url = response.json()["post"]["imageUrl"]
    assert image_url.startswith("/uploads/")
    stored = upload_dir / image_url.rsplit("/", 1)[-1]
    assert stored.read_bytes() == PNG_BYTES

@pytest.mark.asyncio
async def test_create_post_rejects_non_image_upload(test_client: AsyncClient, register_user, upload_dir):
    user = await register_user("sneaky")

    response = await test_client.post(
        "/api/posts",
        data={"text": "look"},
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=user["headers"],
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid file type. Only images are allowed."
    assert list(upload_dir.iterdir()) == []

@pytest.mark.asyncio
async def test_failed_post_removes_staged_upload(test_client: AsyncClient, register_user, upload_dir):
    """The image is saved before the post is validated and must be cleaned up"""
    user = await register_user("verbose")

    response = await test_client.post(
        "/api/posts",
        data={"text": "x" * 2001},
        files={"image": ("cat.png", PNG_BYTES, "image/png")},
        headers=user["headers"],
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "text"
    assert list(upload_dir.iterdir()) == []

@pytest.mark.asyncio
async def test_get_posts(test_client: AsyncClient, register_user):
    """Test getting posts"""
    user = await register_user("getpostsuser")

    for i in range(3):
        await test_client.post("/api/posts", data={"text": f"Test post {i}"}, headers=user["headers"])

    response = await test_client.get("/api/posts")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 3
    assert data["total"] == 3
    assert data["totalPages"] == 1
    assert data["currentPage"] == 1
    assert [p["text"] for p in data["posts"]] == ["Test post 2", "Test post 1", "Test post 0"]

@pytest.mark.asyncio
async def test_get_posts_pagination(test_client: AsyncClient, register_user):
    user = await register_user("pager")

    for i in range(12):
        await test_client.post("/api/posts", data={"text": f"post {i}"}, headers=user["headers"])

    response = await test_client.get("/api/posts", params={"page": "2", "limit": "5"})
    data = response.json()
    assert data["totalPages"] == 3
    assert data["currentPage"] == 2
    assert [p["text"] for p in data["posts"]] == ["post 6", "post 5", "post 4", "post 3", "post 2"]

    # Unparseable values fall back to page 1 with 10 posts per page
    response = await test_client.get("/api/posts", params={"page": "abc", "limit": "0"})
    data = response.json()
    assert response.status_code == 200
    assert data["currentPage"] == 1
    assert data["count"] == 10
    assert data["totalPages"] == 2

@pytest.mark.asyncio
async def test_get_user_posts(test_client: AsyncClient, register_user):
    alice = await register_user("alice")
    bob = await register_user("bob")

    await test_client.post("/api/posts", data={"text": "from alice"}, headers=alice["headers"])
    await test_client.post("/api/posts", data={"text": "from bob"}, headers=bob["headers"])

    response = await test_client.get(f"/api/posts/user/{alice['id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["posts"][0]["text"] == "from alice"

@pytest.mark.asyncio
async def test_get_unknown_post(test_client: AsyncClient):
    response = await test_client.get("/api/posts/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Post not found"}

@pytest.mark.asyncio
async def test_toggle_like(test_client: AsyncClient, register_user):
    author = await register_user("author")
    fan = await register_user("fan")
    created = await test_client.post("/api/posts", data={"text": "like me"}, headers=author["headers"])
    post_id = created.json()["post"]["id"]

    response = await test_client.put(f"/api/posts/{post_id}/like", headers=fan["headers"])
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Post liked"
    assert data["post"]["likes"] == [fan["id"]]
    assert data["post"]["likeCount"] == 1

    response = await test_client.put(f"/api/posts/{post_id}/like", headers=fan["headers"])
    data = response.json()
    assert data["message"] == "Post unliked"
    assert data["post"]["likes"] == []

@pytest.mark.asyncio
async def test_explicit_like_and_unlike(test_client: AsyncClient, register_user):
    user = await register_user("decisive")
    created = await test_client.post("/api/posts", data={"text": "hi"}, headers=user["headers"])
    post_id = created.json()["post"]["id"]

    for _ in range(2):
        response = await test_client.post(f"/api/posts/{post_id}/likes", headers=user["headers"])
        assert response.json()["post"]["likes"] == [user["id"]]

    for _ in range(2):
        response = await test_client.delete(f"/api/posts/{post_id}/likes", headers=user["headers"])
        assert response.json()["post"]["likes"] == []

@pytest.mark.asyncio
async def test_like_unknown_post(test_client: AsyncClient, register_user):
    user = await register_user("lonely")

    response = await test_client.put("/api/posts/does-not-exist/like", headers=user["headers"])

    assert response.status_code == 404

@pytest.mark.asyncio
async def test_add_comment(test_client: AsyncClient, register_user):
    author = await register_user("author")
    bob = await register_user("bob")
    created = await test_client.post("/api/posts", data={"text": "hello"}, headers=author["headers"])
    post_id = created.json()["post"]["id"]

    response = await test_client.post(
        f"/api/posts/{post_id}/comment",
        json={"text": "nice!"},
        headers=bob["headers"],
    )

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Comment added successfully"
    assert data["comment"]["username"] == "bob"
    assert data["comment"]["text"] == "nice!"
    assert data["post"]["commentCount"] == 1

    await test_client.post(f"/api/posts/{post_id}/comment", json={"text": "second"}, headers=author["headers"])

    response = await test_client.get(f"/api/posts/{post_id}/comments")
    assert [c["text"] for c in response.json()["comments"]] == ["nice!", "second"]

@pytest.mark.asyncio
async def test_add_empty_comment(test_client: AsyncClient, register_user):
    user = await register_user("quiet")
    created = await test_client.post("/api/posts", data={"text": "hello"}, headers=user["headers"])
    post_id = created.json()["post"]["id"]

    response = await test_client.post(f"/api/posts/{post_id}/comment", json={"text": ""}, headers=user["headers"])

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["errors"][0]["field"] == "text"

@pytest.mark.asyncio
async def test_delete_post(test_client: AsyncClient, register_user):
    owner = await register_user("owner")
    other = await register_user("other")
    created = await test_client.post("/api/posts", data={"text": "mine"}, headers=owner["headers"])
    post_id = created.json()["post"]["id"]

    response = await test_client.delete(f"/api/posts/{post_id}", headers=other["headers"])
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized to delete this post"
    assert (await test_client.get(f"/api/posts/{post_id}")).status_code == 200

    response = await test_client.delete(f"/api/posts/{post_id}", headers=owner["headers"])
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Post deleted successfully"}

    assert (await test_client.get(f"/api/posts/{post_id}")).status_code == 404

@pytest.mark.asyncio
async def test_delete_post_removes_uploaded_image(test_client: AsyncClient, register_user, upload_dir):
    owner = await register_user("owner")
    created = await test_client.post(
        "/api/posts",
        files={"image": ("cat.png", PNG_BYTES, "image/png")},
        headers=owner["headers"],
    )
    post_id = created.json()["post"]["id"]
    assert len(list(upload_dir.iterdir())) == 1

    response = await test_client.delete(f"/api/posts/{post_id}", headers=owner["headers"])

    assert response.status_code == 200
    assert list(upload_dir.iterdir()) == []
