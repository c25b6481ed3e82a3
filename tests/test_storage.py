from backend.lib.local_storage import LocalStorage, StorageError
from backend.lib.s3_service import S3Storage
from botocore.response import StreamingBody
from botocore.stub import Stubber
import boto3
import io
import pytest

BUCKET = "calc-test-bucket"


def test_local_storage_roundtrip(tmp_path):
    storage = LocalStorage(tmp_path / "nested" / "storage.json")
    assert storage.get("theme") is None
    storage.set("theme", "dark")
    storage.set("recentCalculations", "[]")
    assert storage.get("theme") == "dark"
    assert LocalStorage(tmp_path / "nested" / "storage.json").get("recentCalculations") == "[]"
    storage.remove("theme")
    assert storage.get("theme") is None


def test_local_storage_unreadable_file(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(StorageError):
        LocalStorage(path).get("theme")


def test_local_storage_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    storage = LocalStorage(tmp_path / "storage.json")
    storage.set("theme", "light")

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("backend.lib.local_storage.os.replace", fail_replace)
    with pytest.raises(StorageError):
        storage.set("theme", "dark")
    assert list(tmp_path.glob("*.tmp")) == []
    assert storage.get("theme") == "light"


def make_s3():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    return S3Storage(bucket_name=BUCKET, region="us-east-1", s3_client=client), Stubber(client)


def test_s3_get_and_set():
    storage, stubber = make_s3()
    stubber.add_response(
        "put_object",
        {},
        {"Bucket": BUCKET, "Key": "storage/theme.json", "Body": b"dark", "ContentType": "application/json"},
    )
    stubber.add_response(
        "get_object",
        {"Body": StreamingBody(io.BytesIO(b"dark"), 4)},
        {"Bucket": BUCKET, "Key": "storage/theme.json"},
    )
    with stubber:
        storage.set("theme", "dark")
        assert storage.get("theme") == "dark"
    stubber.assert_no_pending_responses()


def test_s3_missing_key_is_none():
    storage, stubber = make_s3()
    stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
    with stubber:
        assert storage.get("recentCalculations") is None


def test_s3_other_errors_raise_storage_error():
    storage, stubber = make_s3()
    stubber.add_client_error("get_object", service_error_code="AccessDenied", http_status_code=403)
    stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
    with stubber:
        with pytest.raises(StorageError):
            storage.get("theme")
        with pytest.raises(StorageError):
            storage.set("theme", "light")


def test_s3_creates_missing_bucket():
    storage, stubber = make_s3()
    stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
    stubber.add_response("create_bucket", {}, {"Bucket": BUCKET})
    with stubber:
        assert storage.create_bucket_if_not_exists() is True
    stubber.assert_no_pending_responses()


def test_s3_list_keys():
    storage, stubber = make_s3()
    stubber.add_response(
        "list_objects_v2",
        {"Contents": [{"Key": "storage/theme.json"}, {"Key": "storage/recentCalculations.json"}]},
        {"Bucket": BUCKET, "Prefix": "storage/"},
    )
    with stubber:
        assert storage.list_keys() == ["theme", "recentCalculations"]
