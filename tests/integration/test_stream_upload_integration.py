"""Integration tests for stream_upload.

Data flows through a real OS pipe written by a separate thread, the way a
shell pipeline feeds s3pipe. The backend is either the in-memory fake or a
real botocore client with a Stubber attached (no network).
"""

from __future__ import annotations

import io
import os
import threading
from collections.abc import Callable, Iterator
from typing import Any, BinaryIO

import boto3
import pytest
from botocore.stub import ANY, Stubber

from s3pipe.constants import MIB
from s3pipe.errors import TruncatedInputError, UploadError
from s3pipe.s3 import S3MultipartClient
from s3pipe.upload import plan_upload, stream_upload


@pytest.fixture
def pipe() -> Iterator[Callable[[bytes], BinaryIO]]:
    """Factory returning the read end of a pipe fed with ``data`` by a writer thread."""
    threads: list[threading.Thread] = []
    readers: list[BinaryIO] = []

    def _open(data: bytes) -> BinaryIO:
        read_fd, write_fd = os.pipe()

        def _write() -> None:
            try:
                with os.fdopen(write_fd, "wb") as writer:
                    writer.write(data)
            except BrokenPipeError:
                pass

        thread = threading.Thread(target=_write, daemon=True)
        thread.start()
        threads.append(thread)
        reader = os.fdopen(read_fd, "rb")
        readers.append(reader)
        return reader

    yield _open

    for reader in readers:
        reader.close()
    for thread in threads:
        thread.join(timeout=5)


class TestPipeUploads:
    """End-to-end uploads from a pipe into the in-memory backend."""

    @pytest.mark.integration
    @pytest.mark.parametrize("concurrency", [1, 4])
    def test_multi_part_upload(
        self,
        pipe: Callable[[bytes], BinaryIO],
        fake_client: Any,
        payload: Callable[[int], bytes],
        concurrency: int,
    ) -> None:
        data = payload(23 * MIB + 17)

        result = stream_upload(
            pipe(data),
            "s3://backups/nightly/db.dump",
            size=len(data),
            part_size_mb=5,
            concurrency=concurrency,
            client=fake_client,
            quiet=True,
        )

        assert result.part_count == 5
        assert result.total_bytes == len(data)
        assert result.location == "https://backups.s3.amazonaws.com/nightly/db.dump"
        assert fake_client.objects[("backups", "nightly/db.dump")] == data
        assert [p.number for p in fake_client.manifests[0]] == [1, 2, 3, 4, 5]

    @pytest.mark.integration
    def test_excess_bytes_not_uploaded(
        self, pipe: Callable[[bytes], BinaryIO], fake_client: Any
    ) -> None:
        stream_upload(
            pipe(b"A" * 100 + b"B" * 50),
            "s3://b/k",
            size=100,
            part_size_mb=5,
            client=fake_client,
            quiet=True,
        )

        assert fake_client.objects[("b", "k")] == b"A" * 100

    @pytest.mark.integration
    @pytest.mark.parametrize("concurrency", [1, 3])
    def test_truncated_pipe_aborts(
        self,
        pipe: Callable[[bytes], BinaryIO],
        fake_client: Any,
        payload: Callable[[int], bytes],
        concurrency: int,
    ) -> None:
        with pytest.raises(TruncatedInputError):
            stream_upload(
                pipe(payload(8 * MIB)),
                "s3://b/k",
                size=10 * MIB,
                part_size_mb=5,
                concurrency=concurrency,
                client=fake_client,
                quiet=True,
            )

        assert fake_client.abort_calls == 1
        assert fake_client.complete_calls == 0
        assert fake_client.objects == {}

    @pytest.mark.integration
    def test_progress_messages(
        self,
        pipe: Callable[[bytes], BinaryIO],
        fake_client: Any,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        stream_upload(pipe(b"x" * 10), "s3://b/k", size=10, part_size_mb=5, client=fake_client)

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Uploading" in captured.err
        assert "Upload complete" in captured.err

    @pytest.mark.integration
    def test_plan_matches_upload(self, fake_client: Any, payload: Callable[[int], bytes]) -> None:
        data = payload(12 * MIB)
        plan = plan_upload("s3://b/k", size=len(data), memory_budget_mb=79, concurrency=2)

        result = stream_upload(
            io.BytesIO(data),
            "s3://b/k",
            size=len(data),
            memory_budget_mb=79,
            concurrency=2,
            client=fake_client,
            quiet=True,
        )

        assert plan.part_size == 5 * MIB
        assert result.part_size == plan.part_size
        assert result.part_count == plan.part_count == 3


class TestBotocoreStubbed:
    """The full pipeline against a real botocore client with stubbed responses."""

    @pytest.fixture
    def s3(self) -> Any:
        return boto3.client(
            "s3",
            region_name="us-east-1",
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
        )

    @pytest.mark.integration
    def test_three_part_upload(self, s3: Any, pipe: Callable[[bytes], BinaryIO]) -> None:
        data = b"\x07" * (11 * MIB)
        target = {"Bucket": "bucket", "Key": "dumps/db.sql"}
        session = {**target, "UploadId": "u-1"}

        with Stubber(s3) as stubber:
            stubber.add_response("create_multipart_upload", session, target)
            for number in (1, 2, 3):
                stubber.add_response(
                    "upload_part",
                    {"ETag": f'"e{number}"'},
                    {**session, "PartNumber": number, "Body": ANY},
                )
            stubber.add_response(
                "complete_multipart_upload",
                {"Location": "https://bucket.s3.amazonaws.com/dumps/db.sql"},
                {
                    **session,
                    "MultipartUpload": {
                        "Parts": [{"PartNumber": n, "ETag": f'"e{n}"'} for n in (1, 2, 3)]
                    },
                },
            )

            result = stream_upload(
                pipe(data),
                "s3://bucket/dumps/db.sql",
                size=len(data),
                part_size_mb=5,
                client=S3MultipartClient(s3),
                quiet=True,
            )

            stubber.assert_no_pending_responses()

        assert result.location == "https://bucket.s3.amazonaws.com/dumps/db.sql"
        assert result.part_count == 3

    @pytest.mark.integration
    def test_part_error_aborts_upload(self, s3: Any) -> None:
        target = {"Bucket": "bucket", "Key": "k"}
        session = {**target, "UploadId": "u-2"}

        with Stubber(s3) as stubber:
            stubber.add_response("create_multipart_upload", session, target)
            stubber.add_client_error(
                "upload_part", service_error_code="InternalError", http_status_code=500
            )
            stubber.add_response("abort_multipart_upload", {}, session)

            with pytest.raises(UploadError) as exc_info:
                stream_upload(
                    io.BytesIO(b"abc"),
                    "s3://bucket/k",
                    size=3,
                    part_size_mb=5,
                    client=S3MultipartClient(s3),
                    quiet=True,
                )

            stubber.assert_no_pending_responses()

        assert exc_info.value.part_number == 1  # type: ignore[attr-defined]
