"""Tests for the post procedures."""

from __future__ import annotations

import json

from coblog.web.rich_text import build_document


class TestPostListing:
    """Test cases for post.getAll."""

    async def test_empty_listing(self, rpc):
        """Test that listing with no posts returns an empty page."""
        response = await rpc("post.getAll")

        assert response.status_code == 200
        data = response.json()
        assert data["posts"] == []
        assert data["pagination"] == {"page": 1, "limit": 10, "total": 0, "totalPages": 0}

    async def test_pagination_over_published_posts(self, rpc, create_post):
        """Test that a page of 2 over 5 published posts spans 3 pages."""
        # Arrange
        for i in range(1, 6):
            await create_post(f"Post {i}")
        await create_post("Draft", published=False)

        # Act
        response = await rpc("post.getAll", {"published": True, "page": 1, "limit": 2})

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert len(data["posts"]) == 2
        assert data["pagination"]["total"] == 5
        assert data["pagination"]["totalPages"] == 3
        assert [p["title"] for p in data["posts"]] == ["Post 5", "Post 4"]

    async def test_last_page_and_past_the_end(self, rpc, create_post):
        """Test that the last page is partial and later pages are empty."""
        for i in range(1, 6):
            await create_post(f"Post {i}")

        last_page = await rpc("post.getAll", {"page": 3, "limit": 2})
        past_end = await rpc("post.getAll", {"page": 4, "limit": 2})

        assert [p["title"] for p in last_page.json()["posts"]] == ["Post 1"]
        assert past_end.status_code == 200
        assert past_end.json()["posts"] == []
        assert past_end.json()["pagination"]["total"] == 5

    async def test_search_is_case_insensitive(self, rpc, create_post):
        """Test that search matches title, content and excerpt."""
        await create_post("Learning Python")
        await create_post("Cooking", content="A recipe with PYTHON-shaped noodles")
        await create_post("Gardening", excerpt="Why python beats snakes")
        await create_post("Unrelated")

        response = await rpc("post.getAll", {"search": "python"})

        titles = {p["title"] for p in response.json()["posts"]}
        assert titles == {"Learning Python", "Cooking", "Gardening"}
        assert response.json()["pagination"]["total"] == 3

    async def test_search_treats_wildcards_literally(self, rpc, create_post):
        """Test that LIKE wildcards in the search term match only themselves."""
        await create_post("100% organic")
        await create_post("1000 words")

        response = await rpc("post.getAll", {"search": "100%"})

        assert [p["title"] for p in response.json()["posts"]] == ["100% organic"]

    async def test_category_filter_totals_match_rows(self, rpc, create_post, create_category):
        """Test that the category filter is reflected in the pagination totals."""
        # Arrange
        python = await create_category("Python")
        rust = await create_category("Rust")
        await create_post("One", categoryIds=[python["id"]])
        await create_post("Two", categoryIds=[rust["id"]])
        await create_post("Three", categoryIds=[python["id"], rust["id"]])
        await create_post("Four")

        # Act
        response = await rpc("post.getAll", {"categoryId": python["id"], "limit": 1})

        # Assert
        data = response.json()
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["totalPages"] == 2
        assert data["posts"][0]["title"] == "Three"

    async def test_filters_combine(self, rpc, create_post, create_category):
        """Test that search, category and publish filters are ANDed."""
        python = await create_category("Python")
        await create_post("Python tips", categoryIds=[python["id"]])
        await create_post("Python drafts", categoryIds=[python["id"]], published=False)
        await create_post("Python elsewhere")

        response = await rpc(
            "post.getAll",
            {"categoryId": python["id"], "published": True, "search": "python"},
        )

        assert [p["title"] for p in response.json()["posts"]] == ["Python tips"]

    async def test_listing_includes_categories_and_stats(self, rpc, create_post, create_category):
        """Test that listed posts carry category summaries and reading stats."""
        category = await create_category("News")
        await create_post("Hello", content="one two three", categoryIds=[category["id"]])

        post = (await rpc("post.getAll")).json()["posts"][0]

        assert post["categories"] == [{"id": category["id"], "name": "News", "slug": "news"}]
        assert post["stats"]["wordCount"] == 3
        assert post["stats"]["readingTime"] == "1 min read"
        assert "ownerId" not in post

    async def test_invalid_pagination_is_rejected(self, rpc):
        """Test that out-of-range page and limit values fail validation."""
        for params in ({"page": 0}, {"limit": 0}, {"limit": 101}):
            response = await rpc("post.getAll", params)

            assert response.status_code == 422
            assert response.json()["code"] == "BAD_REQUEST"
            assert response.json()["errors"]


class TestPostRetrieval:
    """Test cases for post.getBySlug, post.getById and post.getByOwner."""

    async def test_get_by_slug(self, rpc, create_post):
        """Test fetching a post by slug includes rendered HTML."""
        created = await create_post("Markdown Post", content="# Title\n\nSome **bold** text")

        response = await rpc("post.getBySlug", {"slug": created["slug"]})

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == created["id"]
        assert data["contentFormat"] == "legacy"
        assert "<h1>Title</h1>" in data["contentHtml"]
        assert "<strong>bold</strong>" in data["contentHtml"]

    async def test_get_by_slug_not_found(self, rpc):
        """Test that an unknown slug returns NOT_FOUND."""
        response = await rpc("post.getBySlug", {"slug": "missing-post"})

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NOT_FOUND"
        assert data["requestId"]
        assert data["timestamp"]

    async def test_get_by_id(self, rpc, create_post):
        """Test fetching a post by id."""
        created = await create_post("By Id")

        response = await rpc("post.getById", {"id": created["id"]})

        assert response.status_code == 200
        assert response.json()["slug"] == "by-id"

    async def test_get_by_id_not_found(self, rpc):
        """Test that an unknown id returns NOT_FOUND."""
        response = await rpc("post.getById", {"id": 9999})

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_timestamps_are_utc_on_every_read(self, rpc, create_post):
        """Test that timestamps read back from storage keep their UTC offset."""
        created = await create_post("Timestamps")

        response = await rpc("post.getById", {"id": created["id"]})

        fetched = response.json()
        assert created["createdAt"].endswith("+00:00")
        assert fetched["createdAt"] == created["createdAt"]
        assert fetched["updatedAt"] == created["updatedAt"]

    async def test_content_html_escapes_raw_html(self, rpc, create_post):
        """Test that script tags written into legacy content are not rendered."""
        created = await create_post("Raw HTML", content="Hi <script>alert(1)</script>")

        response = await rpc("post.getBySlug", {"slug": created["slug"]})

        html = response.json()["contentHtml"]
        assert "<script" not in html
        assert "&lt;script&gt;" in html

    async def test_get_by_owner_includes_drafts(self, rpc, create_post, owner_id, other_owner_id):
        """Test that an owner's listing has drafts and excludes other owners."""
        await create_post("Published")
        await create_post("Draft", published=False)
        await create_post("Someone else's", ownerId=other_owner_id)

        response = await rpc("post.getByOwner", {"ownerId": owner_id})

        assert response.status_code == 200
        assert [p["title"] for p in response.json()] == ["Draft", "Published"]

    async def test_get_by_owner_requires_uuid(self, rpc):
        """Test that a malformed owner id fails validation."""
        response = await rpc("post.getByOwner", {"ownerId": "not-a-uuid"})

        assert response.status_code == 422
        assert response.json()["code"] == "BAD_REQUEST"


class TestPostCreate:
    """Test cases for post.create."""

    async def test_create_post(self, rpc, owner_id, create_category):
        """Test creating a post with categories."""
        category = await create_category("Announcements")

        response = await rpc("post.create", {
            "title": "Hello, World!",
            "content": "First post",
            "excerpt": "A greeting",
            "featuredImage": "https://images.example.com/hello.png",
            "published": True,
            "categoryIds": [category["id"]],
            "ownerId": owner_id,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["slug"] == "hello-world"
        assert data["excerpt"] == "A greeting"
        assert data["summary"] == "A greeting"
        assert data["featuredImage"] == "https://images.example.com/hello.png"
        assert data["published"] is True
        assert [c["slug"] for c in data["categories"]] == ["announcements"]
        assert data["createdAt"]
        assert "ownerId" not in data

    async def test_create_defaults_to_draft(self, rpc, owner_id):
        """Test that posts are unpublished unless asked otherwise."""
        response = await rpc("post.create", {"title": "Quiet", "content": "Shh", "ownerId": owner_id})

        assert response.status_code == 200
        assert response.json()["published"] is False

    async def test_slug_collision_gets_suffix(self, create_post):
        """Test that duplicate titles get numbered slugs."""
        first = await create_post("Same Title")
        second = await create_post("Same Title")
        third = await create_post("Same Title")

        assert first["slug"] == "same-title"
        assert second["slug"] == "same-title-1"
        assert third["slug"] == "same-title-2"

    async def test_title_without_slug_characters(self, create_post):
        """Test that a title with no usable characters falls back to a default slug."""
        post = await create_post("!!!")

        assert post["slug"] == "untitled"

    async def test_document_content(self, create_post):
        """Test that document content is detected, counted and rendered."""
        content = json.dumps(build_document(["Hello world", "Foo"]))

        post = await create_post("Doc", content=content)

        assert post["contentFormat"] == "document"
        assert post["stats"]["wordCount"] == 3
        assert post["contentHtml"] == "<p>Hello world</p><p>Foo</p>"
        assert post["summary"] == "Hello world Foo"

    async def test_unknown_category_is_bad_request(self, rpc, owner_id):
        """Test that referencing a missing category fails without creating the post."""
        response = await rpc("post.create", {
            "title": "Orphan",
            "content": "x",
            "categoryIds": [424242],
            "ownerId": owner_id,
        })

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"
        listing = await rpc("post.getByOwner", {"ownerId": owner_id})
        assert listing.json() == []

    async def test_validation_errors(self, rpc, owner_id):
        """Test field validation on create."""
        cases = [
            {"title": "", "content": "x", "ownerId": owner_id},
            {"title": "t" * 201, "content": "x", "ownerId": owner_id},
            {"title": "ok", "content": "", "ownerId": owner_id},
            {"title": "ok", "content": "x", "ownerId": "owner-1"},
            {"title": "ok", "content": "x", "ownerId": owner_id, "featuredImage": "ftp://x/y.png"},
            {"content": "x", "ownerId": owner_id},
        ]

        for params in cases:
            response = await rpc("post.create", params)

            assert response.status_code == 422, params
            body = response.json()
            assert body["code"] == "BAD_REQUEST"
            assert all(error["field"] for error in body["errors"])


class TestPostUpdate:
    """Test cases for post.update."""

    async def test_update_by_owner(self, rpc, create_post, owner_id):
        """Test that the owner can update fields."""
        post = await create_post("Original", excerpt="Old excerpt")

        response = await rpc("post.update", {
            "id": post["id"],
            "ownerId": owner_id,
            "content": "New content here",
            "published": False,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "New content here"
        assert data["published"] is False
        assert data["slug"] == "original"
        assert data["excerpt"] == "Old excerpt"

    async def test_title_change_regenerates_slug(self, rpc, create_post, owner_id):
        """Test that changing the title yields a new unique slug."""
        await create_post("Taken Name")
        post = await create_post("Original")

        response = await rpc("post.update", {"id": post["id"], "ownerId": owner_id, "title": "Taken Name"})

        assert response.status_code == 200
        assert response.json()["slug"] == "taken-name-1"

    async def test_same_title_keeps_slug(self, rpc, create_post, owner_id):
        """Test that resubmitting the same title leaves the slug alone."""
        post = await create_post("Stable")

        response = await rpc("post.update", {"id": post["id"], "ownerId": owner_id, "title": "Stable"})

        assert response.json()["slug"] == "stable"

    async def test_wrong_owner_is_forbidden(self, rpc, create_post, other_owner_id):
        """Test that another owner id is rejected and nothing changes."""
        post = await create_post("Mine")

        response = await rpc("post.update", {
            "id": post["id"],
            "ownerId": other_owner_id,
            "title": "Stolen",
        })

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"
        unchanged = (await rpc("post.getById", {"id": post["id"]})).json()
        assert unchanged["title"] == "Mine"
        assert unchanged["slug"] == "mine"

    async def test_update_missing_post(self, rpc, owner_id):
        """Test that updating an unknown post returns NOT_FOUND."""
        response = await rpc("post.update", {"id": 9999, "ownerId": owner_id, "title": "x"})

        assert response.status_code == 404

    async def test_replace_categories(self, rpc, create_post, create_category, owner_id):
        """Test that category ids replace the post's associations."""
        old = await create_category("Old")
        new = await create_category("New")
        post = await create_post("Recategorized", categoryIds=[old["id"]])

        response = await rpc("post.update", {
            "id": post["id"],
            "ownerId": owner_id,
            "categoryIds": [new["id"]],
        })

        assert [c["name"] for c in response.json()["categories"]] == ["New"]
        old_detail = (await rpc("category.getById", {"id": old["id"]})).json()
        assert old_detail["postCount"] == 0

    async def test_omitted_categories_are_kept(self, rpc, create_post, create_category, owner_id):
        """Test that leaving out category ids keeps the existing associations."""
        category = await create_category("Kept")
        post = await create_post("Keeps", categoryIds=[category["id"]])

        response = await rpc("post.update", {"id": post["id"], "ownerId": owner_id, "title": "Kept it"})

        assert [c["name"] for c in response.json()["categories"]] == ["Kept"]

    async def test_clear_excerpt_with_null(self, rpc, create_post, owner_id):
        """Test that an explicit null clears a nullable field."""
        post = await create_post("Clearable", excerpt="Remove me")

        response = await rpc("post.update", {"id": post["id"], "ownerId": owner_id, "excerpt": None})

        assert response.json()["excerpt"] is None
        assert response.json()["summary"] == "Some content for the post"


class TestPostDelete:
    """Test cases for post.delete."""

    async def test_delete_by_owner(self, rpc, create_post, create_category, owner_id):
        """Test that the owner can delete a post and its associations go too."""
        category = await create_category("Temp")
        post = await create_post("Doomed", categoryIds=[category["id"]])

        response = await rpc("post.delete", {"id": post["id"], "ownerId": owner_id})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert (await rpc("post.getById", {"id": post["id"]})).status_code == 404
        detail = (await rpc("category.getById", {"id": category["id"]})).json()
        assert detail["postCount"] == 0
        assert detail["posts"] == []

    async def test_delete_wrong_owner(self, rpc, create_post, other_owner_id):
        """Test that another owner cannot delete the post."""
        post = await create_post("Protected")

        response = await rpc("post.delete", {"id": post["id"], "ownerId": other_owner_id})

        assert response.status_code == 403
        assert (await rpc("post.getById", {"id": post["id"]})).status_code == 200

    async def test_delete_missing_post(self, rpc, owner_id):
        """Test that deleting an unknown post returns NOT_FOUND."""
        response = await rpc("post.delete", {"id": 9999, "ownerId": owner_id})

        assert response.status_code == 404
