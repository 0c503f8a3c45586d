import asyncio

from botocore.exceptions import ClientError

from tmcrawl.workflows.artifact_sink import ArtifactSink, artifact_key
from tmcrawl.workflows.crawl_config import CrawlSettings

KNOWN_ID = "01ARZ3NDEKTSV4RRFFQ69G5FAV"


class FakeS3:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def put_object(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.calls.append(kwargs)
        return {"ETag": '"abc"'}


def _settings(**overrides) -> CrawlSettings:
    params = {
        "environment": "production",
        "s3_endpoint": "https://s3.local",
        "s3_bucket": "contrail",
        "s3_access_key_id": "AKIA123",
        "s3_secret_access_key": "shh",
    }
    params.update(overrides)
    return CrawlSettings(**params)


def test_artifact_key_layout() -> None:
    assert artifact_key("production", KNOWN_ID, "content", "html") == (
        f"production/20160730/{KNOWN_ID}/{KNOWN_ID}_content.html"
    )


def test_put_returns_key_and_uploads_bytes() -> None:
    client = FakeS3()
    sink = ArtifactSink(_settings(), client=client)

    content_key = asyncio.run(sink.put_content_html(KNOWN_ID, "<html></html>"))
    screenshot_key = asyncio.run(sink.put_screenshot_png(KNOWN_ID, b"\x89PNG"))

    assert content_key == f"production/20160730/{KNOWN_ID}/{KNOWN_ID}_content.html"
    assert screenshot_key == f"production/20160730/{KNOWN_ID}/{KNOWN_ID}_screenshot.png"
    assert client.calls[0]["Bucket"] == "contrail"
    assert client.calls[0]["Body"] == b"<html></html>"
    assert client.calls[0]["ContentType"].startswith("text/html")
    assert client.calls[1]["ContentType"] == "image/png"


def test_unconfigured_sink_returns_none() -> None:
    sink = ArtifactSink(CrawlSettings())
    assert sink.enabled is False
    assert asyncio.run(sink.put_content_html(KNOWN_ID, "<html></html>")) is None


def test_upload_failure_returns_none() -> None:
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
    sink = ArtifactSink(_settings(), client=FakeS3(error=error))
    assert asyncio.run(sink.put_screenshot_png(KNOWN_ID, b"\x89PNG")) is None


def test_far_future_id_falls_back_to_sentinel_partition() -> None:
    late_id = "7ZZZZZZZZZ0000000000000000"
    client = FakeS3()
    sink = ArtifactSink(_settings(), client=client)

    key = asyncio.run(sink.put_content_html(late_id, "<html></html>"))

    assert key == f"production/00000000/{late_id}/{late_id}_content.html"
    assert len(client.calls) == 1
