"""
=============================================================================
S3 SERVICE - Key-value storage in Amazon S3
=============================================================================
An alternative to LocalStorage for the calculator's persisted state, so the
theme preference and calculation history follow the user across machines.

Each key is stored as one object:
    Bucket: electrical-calculator-storage
    Key:    storage/recentCalculations.json
    Full path: s3://electrical-calculator-storage/storage/recentCalculations.json

Enable it with USE_S3_STORAGE=true in the environment (or .env).
=============================================================================
"""

# boto3 - The official AWS SDK for Python
import boto3

# ClientError - Exception class for AWS API errors
from botocore.exceptions import BotoCoreError, ClientError

import os
from typing import List, Optional

from backend.lib.app_logger import get_logger
from backend.lib.local_storage import StorageError

log = get_logger(__name__)

KEY_PREFIX = "storage/"


class S3Storage:
    """
    Key-value storage backed by an S3 bucket.

    Usage:
        storage = S3Storage()
        storage.create_bucket_if_not_exists()
        storage.set("theme", "dark")
        storage.get("theme")  # "dark"
    """

    backend_name = "s3"

    def __init__(self, bucket_name: str = None, region: str = None, s3_client=None):
        """
        Args:
            bucket_name: Optional custom bucket name. If not provided,
                        uses S3_BUCKET_NAME from environment or default.
            region: AWS region, defaults to AWS_REGION or us-east-1.
            s3_client: Pre-built boto3 client (tests pass a stubbed one).

        Credentials come from the usual AWS environment variables
        (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_SESSION_TOKEN).
        """
        self.bucket_name = bucket_name or os.getenv('S3_BUCKET_NAME', 'electrical-calculator-storage')
        self.region = region or os.getenv('AWS_REGION', 'us-east-1')

        if s3_client is None:
            session_token = os.getenv('AWS_SESSION_TOKEN')
            s3_client = boto3.client(
                's3',
                region_name=self.region,
                aws_access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
                aws_secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY'),
                aws_session_token=session_token if session_token else None
            )
        self.s3_client = s3_client

    @staticmethod
    def object_key(key: str) -> str:
        return f"{KEY_PREFIX}{key}.json"

    def create_bucket_if_not_exists(self) -> bool:
        """
        Create the bucket if it doesn't already exist.

        Returns:
            bool: True if the bucket exists or was created successfully

        Note:
            Creating a bucket in us-east-1 must not pass a LocationConstraint.
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True

        except ClientError as e:
            error_code = e.response['Error']['Code']

            if error_code in ('404', 'NoSuchBucket'):
                try:
                    if self.region == 'us-east-1':
                        self.s3_client.create_bucket(Bucket=self.bucket_name)
                    else:
                        self.s3_client.create_bucket(
                            Bucket=self.bucket_name,
                            CreateBucketConfiguration={'LocationConstraint': self.region}
                        )
                    log.info("Created bucket: %s", self.bucket_name)
                    return True

                except ClientError as create_error:
                    log.error("Failed to create bucket: %s", create_error)
                    return False
            else:
                # Some other error (permissions, etc.)
                log.error("Error checking bucket: %s", e)
                return False

    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under `key`.

        Returns:
            str: The stored text, or None if the key was never written

        Raises:
            StorageError: any other S3 failure
        """
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=self.object_key(key)
            )
            return response['Body'].read().decode('utf-8')

        except ClientError as e:
            if e.response['Error']['Code'] in ('NoSuchKey', '404'):
                return None
            raise StorageError(f"Failed to read {key} from S3: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to read {key} from S3: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=self.object_key(key),
                Body=value.encode('utf-8'),
                ContentType='application/json'
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to write {key} to S3: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=self.object_key(key)
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete {key} from S3: {e}") from e

    def list_keys(self) -> List[str]:
        """List the storage keys present in the bucket."""
        try:
            response = self.s3_client.list_objects_v2(
                Bucket=self.bucket_name,
                Prefix=KEY_PREFIX
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list S3 keys: {e}") from e

        keys = []
        for obj in response.get('Contents', []):
            name = obj['Key'][len(KEY_PREFIX):]
            if name.endswith('.json'):
                keys.append(name[:-len('.json')])
        return keys
