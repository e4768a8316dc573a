import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
import logging
import threading
from typing import Dict, List, Any, Optional

from ...core.base.account import AwsAccount
from ...core.exceptions import AWSError


class AWSClient:
    """boto3 session holder with per-service, per-region client cache"""

    def __init__(self, profile: Optional[str] = None, region: str = "us-east-1",
                 session: Optional[boto3.Session] = None):
        self.profile = profile
        self.region = region
        self.session = session
        self.clients: Dict[str, Any] = {}
        self.account_clients: Dict[str, "AWSClient"] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def authenticate(self) -> bool:
        """Authenticate with AWS"""
        try:
            if self.session is None:
                if self.profile:
                    self.session = boto3.Session(profile_name=self.profile)
                else:
                    self.session = boto3.Session()

            identity = self.session.client('sts').get_caller_identity()
            self.logger.info(f"Authenticated as: {identity['Arn']}")
            return True

        except NoCredentialsError:
            self.logger.error("No AWS credentials found")
            return False
        except (BotoCoreError, ClientError) as e:
            self.logger.error(f"AWS authentication failed: {str(e)}")
            return False

    def assume_role(self, account: AwsAccount) -> "AWSClient":
        """Return a client acting inside ``account`` through its cross-account role

        Accounts without a role ARN are reached with the current credentials.
        """
        if not account.role_arn:
            return self

        params = {
            'RoleArn': account.role_arn,
            'RoleSessionName': account.session_name,
        }
        if account.external_id:
            params['ExternalId'] = account.external_id

        try:
            credentials = self.get_client('sts').assume_role(**params)['Credentials']
        except (BotoCoreError, ClientError) as e:
            raise AWSError(f"Cannot assume {account.role_arn}: {e}") from e

        session = boto3.Session(
            aws_access_key_id=credentials['AccessKeyId'],
            aws_secret_access_key=credentials['SecretAccessKey'],
            aws_session_token=credentials['SessionToken'],
        )
        self.logger.info(f"Assumed role {account.role_arn}")
        return AWSClient(region=self.region, session=session)

    def for_account(self, account: AwsAccount) -> "AWSClient":
        """Cached ``assume_role`` so each account's role is assumed once"""
        with self._lock:
            cached = self.account_clients.get(account.account_id)
        if cached is not None:
            return cached

        client = self.assume_role(account)
        with self._lock:
            return self.account_clients.setdefault(account.account_id, client)

    def get_client(self, service: str, region: str = None):
        """Get or create a boto3 client for a service"""
        if not self.session:
            if not self.authenticate():
                raise AWSError("Not authenticated")

        region = region or self.region or 'us-east-1'
        client_key = f"{service}_{region}"

        with self._lock:
            if client_key not in self.clients:
                self.clients[client_key] = self.session.client(service, region_name=region)
            return self.clients[client_key]

    def get_regions(self) -> List[str]:
        """Get list of regions enabled for the account"""
        try:
            response = self.get_client('ec2').describe_regions()
        except (BotoCoreError, ClientError) as e:
            raise AWSError(f"Failed to get regions: {e}") from e
        return sorted(region['RegionName'] for region in response['Regions'])

    def get_account_id(self) -> str:
        """Get AWS account ID"""
        try:
            return self.get_client('sts').get_caller_identity()['Account']
        except (BotoCoreError, ClientError) as e:
            raise AWSError(f"Failed to get account id: {e}") from e
