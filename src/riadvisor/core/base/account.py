from dataclasses import dataclass, field, replace
from typing import List, Optional

from ..validation import Validator


@dataclass(frozen=True)
class AwsAccount:
    """A customer AWS account and how to reach it"""
    account_id: str
    name: str = ""
    role_arn: Optional[str] = None
    external_id: Optional[str] = None
    regions: List[str] = field(default_factory=list)

    def __post_init__(self):
        Validator.validate_aws_account_id(self.account_id)
        if self.role_arn:
            Validator.validate_role_arn(self.role_arn)
        for region in self.regions:
            Validator.validate_aws_region(region)

    @property
    def display_name(self) -> str:
        return self.name or self.account_id

    @property
    def session_name(self) -> str:
        return f"riadvisor-{self.account_id}"

    @classmethod
    def from_config(cls, config) -> "AwsAccount":
        """Build an account from an ``AccountConfig`` section"""
        return cls(
            account_id=config.account_id,
            name=config.name,
            role_arn=config.role_arn,
            external_id=config.external_id,
            regions=list(config.regions),
        )

    def with_defaults(self, aws) -> "AwsAccount":
        """
        Fill what the account leaves unset from the ``aws`` settings section.

        ``aws.assume_role_arn`` may contain an ``{account_id}`` placeholder; its
        ``external_id`` only applies together with the default role.
        """
        role_arn, external_id = self.role_arn, self.external_id
        if not role_arn and aws.assume_role_arn:
            role_arn = aws.assume_role_arn.format(account_id=self.account_id)
            external_id = external_id or aws.external_id
        return replace(self, role_arn=role_arn, external_id=external_id,
                       regions=list(self.regions or aws.regions))
