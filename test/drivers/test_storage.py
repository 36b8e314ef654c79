from pytest import raises

from docket_sync import RemoteError, RestBlobStore

from fakes import FakeSession, make_response

URL = "https://example.test"


def test_upload():
    session = FakeSession(make_response(200, {"Key": "documents/a"}))
    blobs = RestBlobStore(URL, "anon-key", session=session)

    blobs.upload("owner-1/k1/my contract.pdf", b"%PDF", overwrite=True)

    sent = session.sent[0]
    assert sent["method"] == "POST"
    assert sent["url"] == (
        f"{URL}/storage/v1/object/documents/owner-1/k1/my%20contract.pdf"
    )
    assert sent["data"] == b"%PDF"
    assert sent["headers"]["x-upsert"] == "true"
    assert sent["headers"]["Content-Type"] == "application/octet-stream"
    assert sent["timeout"] == 60.0


def test_download():
    session = FakeSession(
        make_response(200, content=b"%PDF"),
        make_response(404, {"error": "not_found", "message": "Object not found"}),
    )
    blobs = RestBlobStore(URL, "anon-key", bucket="files", session=session)

    assert blobs.download("owner-1/k1/d1.pdf") == b"%PDF"
    assert session.sent[0]["url"] == f"{URL}/storage/v1/object/files/owner-1/k1/d1.pdf"

    with raises(RemoteError) as e:
        blobs.download("owner-1/k1/d2.pdf")

    assert e.value.message == "HTTP 404: Object not found"


def test_remove():
    session = FakeSession(make_response(200, []))
    blobs = RestBlobStore(URL, "anon-key", session=session)

    blobs.remove([])
    blobs.remove(["owner-1/k1/d1.pdf", "owner-1/k1/d2.pdf"])

    assert len(session.sent) == 1
    assert session.sent[0]["method"] == "DELETE"
    assert session.sent[0]["url"] == f"{URL}/storage/v1/object/documents"
    assert session.sent[0]["json"] == {
        "prefixes": ["owner-1/k1/d1.pdf", "owner-1/k1/d2.pdf"]
    }
