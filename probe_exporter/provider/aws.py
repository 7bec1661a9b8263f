"""
AWS implementation of the provider interface (EC2 + S3 via boto3).
"""

import logging
from typing import Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..cleanup.models import ResourceKind, TrackedResource
from ..errors import ConfigurationError, ProviderError
from ..names import RESOURCE_TAG, to_tag_specification
from .base import Address, CloudProvider, KeyPair

logger = logging.getLogger(__name__)

# Environment variables boto3 reads when building a session
CREDENTIAL_VARIABLES = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_PROFILE",
    "AWS_DEFAULT_REGION",
    "AWS_REGION",
    "AWS_ENDPOINT_URL",
)

SERVICES = ("sts", "ec2", "s3")

LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped", "shutting-down"]


def _provider_error(action: str, error: Exception) -> ProviderError:
    """Translate a botocore exception into a ProviderError."""
    code = None
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code")
    return ProviderError(f"{action} failed: {error}", code=code)


def _tags_to_dict(tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    return {tag['Key']: tag['Value'] for tag in tags or []}


def _name_filter() -> Dict:
    return {'Name': 'tag:Name', 'Values': [f'{RESOURCE_TAG}-*']}


class AWSProvider(CloudProvider):
    """
    EC2 and S3 backed provider.

    A new provider (and therefore a new boto3 session) is built for every
    scrape, with client timeouts capped to the scrape timeout.
    """

    def __init__(self, region: Optional[str] = None, timeout: Optional[float] = None):
        self.region = region
        self.timeout = timeout
        self._clients: Dict[str, object] = {}

    def authenticate(self) -> None:
        # Credential providers (SSO, credential_process, ...) resolve lazily and
        # raise botocore errors from get_credentials()
        try:
            session = boto3.Session(region_name=self.region)
            credentials = session.get_credentials()
            region = session.region_name
        except BotoCoreError as e:
            raise ConfigurationError(f"authentication failure: {e}") from e

        if credentials is None:
            raise ConfigurationError("authentication failure: no AWS credentials found")

        if region is None:
            raise ConfigurationError("authentication failure: no AWS region configured")

        # Sessions are not thread safe, clients are: build them all up front
        config = self._client_config()
        try:
            clients = {service: session.client(service, config=config) for service in SERVICES}
            clients['sts'].get_caller_identity()
        except (ClientError, NoCredentialsError, BotoCoreError) as e:
            raise ConfigurationError(f"authentication failure: {e}") from e

        self._clients = clients
        self.region = region

    def _client_config(self) -> Config:
        config = Config(retries={'max_attempts': 2, 'mode': 'standard'})
        if self.timeout is not None:
            config = config.merge(Config(
                connect_timeout=max(1.0, min(self.timeout, 10.0)),
                read_timeout=max(1.0, self.timeout),
            ))
        return config

    def _client(self, service: str):
        if service not in self._clients:
            raise ConfigurationError("provider used before authenticate()")
        return self._clients[service]

    # Compute

    def create_key_pair(self, name: str, tags: Dict[str, str]) -> KeyPair:
        try:
            response = self._client('ec2').create_key_pair(
                KeyName=name,
                TagSpecifications=[to_tag_specification('key-pair', tags)],
            )
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"create key pair {name}", e) from e

        return KeyPair(name=response['KeyName'], private_key=response['KeyMaterial'])

    def run_instance(
        self,
        name: str,
        tags: Dict[str, str],
        image: str,
        flavor: str,
        key_name: str,
        subnet: Optional[str] = None,
        security_group: Optional[str] = None,
    ) -> str:
        params = {
            'ImageId': image,
            'InstanceType': flavor,
            'KeyName': key_name,
            'MinCount': 1,
            'MaxCount': 1,
            'TagSpecifications': [to_tag_specification('instance', tags)],
        }
        if subnet:
            params['SubnetId'] = subnet
        if security_group:
            params['SecurityGroupIds'] = [security_group]

        try:
            response = self._client('ec2').run_instances(**params)
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"create instance {name}", e) from e

        return response['Instances'][0]['InstanceId']

    def instance_state(self, instance_id: str) -> str:
        try:
            response = self._client('ec2').describe_instances(InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"describe instance {instance_id}", e) from e

        for reservation in response.get('Reservations', []):
            for instance in reservation.get('Instances', []):
                return instance['State']['Name']

        raise ProviderError(f"instance {instance_id} not found", code="InvalidInstanceID.NotFound")

    def allocate_address(self, name: str, tags: Dict[str, str], pool: Optional[str] = None) -> Address:
        params = {
            'Domain': 'vpc',
            'TagSpecifications': [to_tag_specification('elastic-ip', tags)],
        }
        if pool and pool != 'amazon':
            params['PublicIpv4Pool'] = pool

        try:
            response = self._client('ec2').allocate_address(**params)
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"allocate address {name}", e) from e

        return Address(allocation_id=response['AllocationId'], public_ip=response['PublicIp'])

    def associate_address(self, allocation_id: str, instance_id: str) -> None:
        try:
            self._client('ec2').associate_address(AllocationId=allocation_id, InstanceId=instance_id)
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"associate address {allocation_id}", e) from e

    # Object store

    def create_bucket(self, name: str, tags: Dict[str, str]) -> None:
        s3 = self._client('s3')
        params = {'Bucket': name}
        if self.region and self.region != 'us-east-1':
            params['CreateBucketConfiguration'] = {'LocationConstraint': self.region}

        try:
            s3.create_bucket(**params)
            s3.put_bucket_tagging(
                Bucket=name,
                Tagging={'TagSet': [{'Key': k, 'Value': v} for k, v in tags.items()]},
            )
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"create bucket {name}", e) from e

    def put_object(self, bucket: str, key: str, data: bytes) -> None:
        try:
            self._client('s3').put_object(Bucket=bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"upload {bucket}/{key}", e) from e

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            response = self._client('s3').get_object(Bucket=bucket, Key=key)
            return response['Body'].read()
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"download {bucket}/{key}", e) from e

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._client('s3').delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"delete {bucket}/{key}", e) from e

    # Inventory

    def list_resources(self, kind: ResourceKind) -> List[TrackedResource]:
        try:
            if kind == ResourceKind.INSTANCE:
                return self._list_instances()
            elif kind == ResourceKind.ADDRESS:
                return self._list_addresses()
            elif kind == ResourceKind.KEY_PAIR:
                return self._list_key_pairs()
            elif kind == ResourceKind.BUCKET:
                return self._list_buckets()
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"list {kind.value} resources", e) from e

        raise ProviderError(f"Don't know how to list {kind.value} resources")

    def _list_instances(self) -> List[TrackedResource]:
        found = []
        paginator = self._client('ec2').get_paginator('describe_instances')

        for page in paginator.paginate(Filters=[
            _name_filter(),
            {'Name': 'instance-state-name', 'Values': LIVE_INSTANCE_STATES},
        ]):
            for reservation in page.get('Reservations', []):
                for instance in reservation.get('Instances', []):
                    tags = _tags_to_dict(instance.get('Tags'))
                    found.append(TrackedResource(
                        kind=ResourceKind.INSTANCE,
                        resource_id=instance['InstanceId'],
                        name=tags.get('Name', ''),
                        tags=tags,
                    ))

        return found

    def _list_addresses(self) -> List[TrackedResource]:
        response = self._client('ec2').describe_addresses(Filters=[_name_filter()])

        found = []
        for address in response.get('Addresses', []):
            tags = _tags_to_dict(address.get('Tags'))
            found.append(TrackedResource(
                kind=ResourceKind.ADDRESS,
                resource_id=address['AllocationId'],
                name=tags.get('Name', ''),
                tags=tags,
            ))

        return found

    def _list_key_pairs(self) -> List[TrackedResource]:
        response = self._client('ec2').describe_key_pairs(
            Filters=[{'Name': 'key-name', 'Values': [f'{RESOURCE_TAG}-*']}]
        )

        return [
            TrackedResource(
                kind=ResourceKind.KEY_PAIR,
                resource_id=key_pair['KeyName'],
                name=key_pair['KeyName'],
                tags=_tags_to_dict(key_pair.get('Tags')),
            )
            for key_pair in response.get('KeyPairs', [])
        ]

    def _list_buckets(self) -> List[TrackedResource]:
        response = self._client('s3').list_buckets()

        return [
            TrackedResource(kind=ResourceKind.BUCKET, resource_id=bucket['Name'], name=bucket['Name'])
            for bucket in response.get('Buckets', [])
            if bucket['Name'].startswith(f'{RESOURCE_TAG}-')
        ]

    def delete_resource(self, resource: TrackedResource) -> None:
        try:
            if resource.kind == ResourceKind.INSTANCE:
                self._client('ec2').terminate_instances(InstanceIds=[resource.resource_id])
            elif resource.kind == ResourceKind.ADDRESS:
                self._release_address(resource.resource_id)
            elif resource.kind == ResourceKind.KEY_PAIR:
                self._client('ec2').delete_key_pair(KeyName=resource.resource_id)
            elif resource.kind == ResourceKind.BUCKET:
                self._delete_bucket(resource.resource_id)
            else:
                raise ProviderError(f"Don't know how to delete {resource.kind.value} resource: {resource.resource_id}")
        except (ClientError, BotoCoreError) as e:
            raise _provider_error(f"delete {resource.kind.value} {resource.resource_id}", e) from e

    def _release_address(self, allocation_id: str) -> None:
        ec2 = self._client('ec2')

        response = ec2.describe_addresses(AllocationIds=[allocation_id])
        for address in response.get('Addresses', []):
            if address.get('AssociationId'):
                logger.debug(f"Disassociating address {allocation_id} from {address.get('InstanceId')}")
                ec2.disassociate_address(AssociationId=address['AssociationId'])

        ec2.release_address(AllocationId=allocation_id)

    def _delete_bucket(self, bucket_name: str) -> None:
        """Delete S3 bucket (empty it first)."""
        s3 = self._client('s3')

        paginator = s3.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=bucket_name):
            if 'Contents' in page:
                objects = [{'Key': obj['Key']} for obj in page['Contents']]
                s3.delete_objects(Bucket=bucket_name, Delete={'Objects': objects})

        s3.delete_bucket(Bucket=bucket_name)


def present_credential_variables(environ: Dict[str, str]) -> List[str]:
    """Names (never values) of the AWS variables set in the environment."""
    return [name for name in CREDENTIAL_VARIABLES if environ.get(name)]
