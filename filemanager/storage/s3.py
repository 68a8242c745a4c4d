# filemanager/storage/s3.py
import logging
from typing import BinaryIO, Iterator, List, Optional

import boto3
from botocore.exceptions import ClientError

from filemanager.storage.base import Storage, StorageEntry, StorageStat

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def _not_found(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code", "")
    return code in ("404", "NoSuchKey", "NotFound")


class S3Storage(Storage):
    """
    Cloud drive variant: objects in one bucket.

    Folders are ``/``-delimited key prefixes. ``make_dir`` writes an empty
    ``prefix/`` marker object so that empty folders survive listing.
    """

    def __init__(self, client, bucket: str):
        self.s3 = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings) -> "S3Storage":
        client = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
        return cls(client, settings.aws_s3_bucket_name)

    @staticmethod
    def _prefix(path: str) -> str:
        return f"{path}/" if path else ""

    def _keys_under(self, prefix: str) -> Iterator[str]:
        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                yield obj["Key"]

    def list_dir(self, path: str) -> List[StorageEntry]:
        prefix = self._prefix(path)
        entries = []
        found = not path
        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
            for common in page.get("CommonPrefixes", []):
                found = True
                name = common["Prefix"][len(prefix):].rstrip("/")
                if name:
                    entries.append(StorageEntry(name=name, is_dir=True))
            for obj in page.get("Contents", []):
                found = True
                name = obj["Key"][len(prefix):]
                if name:  # skip the folder marker itself
                    entries.append(StorageEntry(name=name, is_dir=False))
        if not found:
            raise FileNotFoundError(f"No such folder: {path}")
        return entries

    def stat(self, path: str) -> StorageStat:
        try:
            head = self.s3.head_object(Bucket=self.bucket, Key=path)
        except ClientError as exc:
            if _not_found(exc):
                raise FileNotFoundError(path) from exc
            raise OSError(str(exc)) from exc
        modified = head["LastModified"]
        return StorageStat(size=head["ContentLength"], modified=modified, created=modified)

    def is_file(self, path: str) -> bool:
        if not path:
            return False
        try:
            self.s3.head_object(Bucket=self.bucket, Key=path)
            return True
        except ClientError as exc:
            if _not_found(exc):
                return False
            raise OSError(str(exc)) from exc

    def is_dir(self, path: str) -> bool:
        if not path:
            return True
        resp = self.s3.list_objects_v2(Bucket=self.bucket, Prefix=self._prefix(path), MaxKeys=1)
        return resp.get("KeyCount", 0) > 0

    def exists(self, path: str) -> bool:
        return self.is_file(path) or self.is_dir(path)

    def make_dir(self, path: str) -> None:
        if self.is_dir(path):
            raise FileExistsError(path)
        self.s3.put_object(Bucket=self.bucket, Key=self._prefix(path), Body=b"")

    def save_stream(self, path: str, stream: BinaryIO, content_type: Optional[str] = None) -> int:
        body = stream.read()
        self.s3.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=body,
            ContentType=content_type or "application/octet-stream",
        )
        return len(body)

    def read_text(self, path: str) -> str:
        obj = self.s3.get_object(Bucket=self.bucket, Key=path)
        return obj["Body"].read().decode("utf-8")

    def write_text(self, path: str, content: str) -> None:
        self.s3.put_object(Bucket=self.bucket, Key=path, Body=content.encode("utf-8"))

    def open_stream(self, path: str) -> Iterator[bytes]:
        obj = self.s3.get_object(Bucket=self.bucket, Key=path)
        body = obj["Body"]
        while chunk := body.read(CHUNK_SIZE):
            yield chunk

    def delete_file(self, path: str) -> None:
        if not self.is_file(path):
            raise FileNotFoundError(path)
        self.s3.delete_object(Bucket=self.bucket, Key=path)

    def delete_dir(self, path: str) -> None:
        if not path:
            raise PermissionError("Cannot delete the storage root.")
        keys = list(self._keys_under(self._prefix(path)))
        # delete_objects accepts at most 1000 keys per call
        for start in range(0, len(keys), 1000):
            batch = [{"Key": key} for key in keys[start:start + 1000]]
            resp = self.s3.delete_objects(Bucket=self.bucket, Delete={"Objects": batch})
            # per-key failures come back in the response, not as an exception
            errors = resp.get("Errors") or []
            if errors:
                failed = ", ".join(f"{e.get('Key')} ({e.get('Code')})" for e in errors[:5])
                raise OSError(f"Could not delete {len(errors)} object(s) under {path}: {failed}")

    def rename(self, src: str, dst: str) -> None:
        if self.is_file(src):
            self.copy_file(src, dst)
            self.s3.delete_object(Bucket=self.bucket, Key=src)
            return
        src_prefix, dst_prefix = self._prefix(src), self._prefix(dst)
        for key in list(self._keys_under(src_prefix)):
            new_key = dst_prefix + key[len(src_prefix):]
            self.s3.copy_object(Bucket=self.bucket, Key=new_key, CopySource={"Bucket": self.bucket, "Key": key})
            self.s3.delete_object(Bucket=self.bucket, Key=key)

    def copy_file(self, src: str, dst: str) -> None:
        self.s3.copy_object(Bucket=self.bucket, Key=dst, CopySource={"Bucket": self.bucket, "Key": src})
