"""
HTTP route tests through TestClient.
"""

from urllib.parse import quote


def upload(client, name="hello.txt", data=b"hi", folder=""):
    response = client.post(
        "/upload",
        files=[("files", (name, data, "text/plain"))],
        data={"currentPath": folder},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return response


def managed_files(client, folder=""):
    response = client.get("/api/files", params={"path": folder})
    assert response.status_code == 200
    return [item for item in response.json() if item["type"] != "folder"]


class TestBrowsing:

    def test_ping(self, client):
        response = client.get("/ping")
        assert response.status_code == 200
        assert response.text == "pong"

    def test_dashboard_lists_uploads(self, client):
        upload(client, "hello.txt")
        response = client.get("/")
        assert response.status_code == 200
        assert "hello.txt" in response.text

    def test_security_headers(self, client):
        response = client.get("/ping")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert "default-src 'self'" in response.headers["Content-Security-Policy"]
        assert response.headers["Strict-Transport-Security"].startswith("max-age=31536000")

    def test_search_filters_dashboard_and_api(self, client):
        upload(client, "Quarterly Report.pdf")
        upload(client, "holiday.png")
        client.post("/create-folder", data={"folderName": "reports"})

        page = client.get("/", params={"search": "REPORT"})
        assert page.status_code == 200
        assert "Quarterly_Report.pdf" in page.text
        assert "holiday.png" not in page.text

        items = client.get("/api/files", params={"search": "report"}).json()
        assert sorted(i["name"] for i in items) == ["Quarterly_Report.pdf", "reports"]

    def test_search_without_matches(self, client):
        upload(client, "a.txt")
        page = client.get("/", params={"search": "zzz"})
        assert "No items match your search." in page.text

    def test_missing_folder_renders_error_page(self, client):
        response = client.get("/", params={"path": "missing"})
        assert response.status_code == 404
        assert "missing" in response.text
        assert "not found." in response.text

    def test_unknown_route(self, client):
        response = client.get("/does-not-exist")
        assert response.status_code == 404
        assert "404: The requested URL /does-not-exist was not found." in response.text


class TestUploadAndDownload:

    def test_upload_creates_managed_record(self, client):
        upload(client, "hello.txt", b"hi there")

        [item] = managed_files(client)
        assert item["isManaged"] is True
        assert item["name"] == "hello.txt"
        assert item["bytes"] == 8
        assert item["downloads"] == 0
        assert item["lastAccessed"] is None

    def test_upload_without_files(self, client):
        response = client.post("/upload", data={"currentPath": ""})
        assert response.status_code == 400
        assert "No files selected for upload." in response.text

    def test_upload_rejected_extension(self, client):
        response = client.post("/upload", files=[("files", ("run.exe", b"MZ", "application/octet-stream"))])
        assert response.status_code == 400

    def test_download_counts(self, client):
        upload(client, "hello.txt", b"hi")
        [item] = managed_files(client)

        response = client.get("/download/" + quote(item["path"]))
        assert response.status_code == 200
        assert response.content == b"hi"
        assert "attachment" in response.headers["content-disposition"]

        record = client.get(f"/api/files/{item['fileId']}").json()
        assert record["downloads"] == 1

    def test_raw_does_not_count(self, client):
        upload(client, "hello.txt", b"hi")
        [item] = managed_files(client)

        assert client.get("/raw/" + quote(item["path"])).content == b"hi"
        assert client.get(f"/api/files/{item['fileId']}").json()["downloads"] == 0

    def test_unknown_record(self, client):
        response = client.get("/api/files/nope")
        assert response.status_code == 404
        assert response.json()["message"] == "No file with id nope."

    def test_preview_text(self, client):
        upload(client, "hello.txt", b"preview me")
        [item] = managed_files(client)

        response = client.get("/preview/" + quote(item["path"]))
        assert response.status_code == 200
        assert "preview me" in response.text


class TestEditing:

    def test_edit_and_save(self, client, storage):
        upload(client, "notes.txt", b"old")
        [item] = managed_files(client)
        path = quote(item["path"])

        response = client.get("/edit/" + path)
        assert response.status_code == 200
        assert "old" in response.text

        response = client.post("/save/" + path, data={"content": "new text"}, follow_redirects=False)
        assert response.status_code == 303
        assert storage.read_text(item["path"]) == "new text"

    def test_edit_binary_is_rejected(self, client):
        client.post("/upload", files=[("files", ("pic.png", b"\x89PNG", "image/png"))])
        [item] = managed_files(client)
        assert client.get("/edit/" + quote(item["path"])).status_code == 400


class TestMutations:

    def test_create_folder(self, client):
        response = client.post("/create-folder", data={"folderName": "docs", "currentPath": ""}, follow_redirects=False)
        assert response.status_code == 303
        folders = [item for item in client.get("/api/files").json() if item["type"] == "folder"]
        assert [f["name"] for f in folders] == ["docs"]

    def test_create_duplicate_folder(self, client):
        client.post("/create-folder", data={"folderName": "docs"})
        response = client.post("/create-folder", data={"folderName": "docs"})
        assert response.status_code == 409

    def test_rename(self, client):
        upload(client, "draft.txt")
        [item] = managed_files(client)

        response = client.post("/rename/" + quote(item["path"]), data={"newName": "final"}, follow_redirects=False)
        assert response.status_code == 303

        [renamed] = managed_files(client)
        assert renamed["name"] == "final.txt"
        assert renamed["fileId"] == item["fileId"]

    def test_copy(self, client):
        upload(client, "a.txt")
        [item] = managed_files(client)

        response = client.post("/copy/" + quote(item["path"]), data={}, follow_redirects=False)
        assert response.status_code == 303

        ids = {i["fileId"] for i in managed_files(client)}
        assert len(ids) == 2

    def test_delete(self, client):
        upload(client, "a.txt")
        [item] = managed_files(client)

        response = client.post("/delete/" + quote(item["path"]), follow_redirects=False)
        assert response.status_code == 303
        assert managed_files(client) == []

    def test_delete_multiple_partial_failure(self, client):
        upload(client, "a.txt")
        [item] = managed_files(client)

        response = client.post("/delete-multiple", data={"items": [item["path"], "missing.txt"], "currentPath": ""})

        assert response.status_code == 500
        assert "Successfully deleted 1 items, but encountered errors with 1 items." in response.text
        assert managed_files(client) == []


class TestReports:

    def test_share(self, client):
        upload(client, "a.txt")
        [item] = managed_files(client)

        response = client.get("/share/" + quote(item["path"]))
        assert response.status_code == 200
        assert "/download/" in response.text

    def test_history(self, client):
        upload(client, "a.txt")

        assert client.get("/history", params={"action": "upload"}).status_code == 200
        entries = client.get("/api/history", params={"action": "upload"}).json()
        assert [e["filename"] for e in entries] == ["a.txt"]
        assert entries[0]["ip"] == "testclient"

    def test_history_forwarded_ip(self, client):
        client.get("/", headers={"X-Forwarded-For": "10.0.0.1, 10.0.0.2"})
        [entry] = client.get("/api/history", params={"action": "view_folder"}).json()
        assert entry["ip"] == "10.0.0.1"

    def test_admin(self, client):
        upload(client, "a.txt")
        response = client.get("/admin")
        assert response.status_code == 200
        assert "Admin Panel" in response.text
