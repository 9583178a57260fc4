from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from petlodge.config import StorageOptions
from petlodge.exceptions import ImageNotFoundError
from petlodge.images import ImageStore, sanitize_filename


@pytest.fixture
def s3_client():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://signed.example/url"
    return client


@pytest.fixture
def images(s3_client) -> ImageStore:
    return ImageStore(StorageOptions(bucket="petlodge-images"), client=s3_client)


@pytest.mark.unit
class TestSanitizeFilename:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("miso.png", "miso.png"),
            ("my cat (1).jpg", "my-cat-1-.jpg"),
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\mia\\cat.jpeg", "cat.jpeg"),
            ("...", "image"),
        ],
    )
    def test_sanitize(self, raw, expected):
        assert sanitize_filename(raw) == expected


@pytest.mark.unit
class TestUpload:
    def test_upload_issues_key(self, images, s3_client):
        stored = images.upload_image(b"\x89PNG", "miso.png", owner="mia")

        assert stored.key.startswith("public/mia/")
        assert stored.key.endswith("-miso.png")
        assert stored.content_type == "image/png"
        assert stored.size == 4
        s3_client.put_object.assert_called_once_with(
            Bucket="petlodge-images", Key=stored.key, Body=b"\x89PNG", ContentType="image/png"
        )

    def test_keys_are_unique(self, images):
        first = images.upload_image(b"a", "miso.png", owner="mia")
        second = images.upload_image(b"a", "miso.png", owner="mia")
        assert first.key != second.key

    def test_explicit_content_type(self, images):
        stored = images.upload_image(b"a", "upload", owner="mia", content_type="image/webp")
        assert stored.content_type == "image/webp"

    def test_rejects_non_images(self, images, s3_client):
        with pytest.raises(ValueError, match="image"):
            images.upload_image(b"%PDF", "doc.pdf", owner="mia")
        s3_client.put_object.assert_not_called()

    def test_requires_owner(self, images):
        with pytest.raises(ValueError):
            images.upload_image(b"a", "miso.png", owner="")


@pytest.mark.unit
class TestUrls:
    def test_presigned_url(self, images, s3_client):
        url = images.get_url("public/mia/x-miso.png")

        assert url == "https://signed.example/url"
        s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "petlodge-images", "Key": "public/mia/x-miso.png"},
            ExpiresIn=900,
        )

    def test_custom_expiry(self, images, s3_client):
        images.get_url("k", expires_in=60)
        assert s3_client.generate_presigned_url.call_args.kwargs["ExpiresIn"] == 60

    def test_empty_key(self, images):
        with pytest.raises(ValueError):
            images.get_url("")

    def test_delete_missing(self, images, s3_client):
        s3_client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "DeleteObject"
        )
        with pytest.raises(ImageNotFoundError):
            images.delete_image("public/mia/gone.png")

    def test_delete_empty_key(self, images, s3_client):
        with pytest.raises(ValueError):
            images.delete_image("")
        s3_client.delete_object.assert_not_called()
