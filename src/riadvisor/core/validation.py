"""Input validation utilities"""

import re
from typing import List, Optional, Union
from datetime import datetime, date
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import ValidationError as CustomValidationError
from .period import Cadence


class Validator:
    """Central validation utility"""

    # Regex patterns for validation
    PATTERNS = {
        'aws_account_id': re.compile(r'^\d{12}$'),
        'aws_region': re.compile(r'^[a-z]{2}(-gov)?-[a-z]+-\d{1}$'),
        'aws_role_arn': re.compile(r'^arn:aws[a-z-]*:iam::\d{12}:role/.+$'),
        'instance_type': re.compile(r'^[a-z0-9.-]+\.[0-9]*x?[a-z]+$'),
    }

    @classmethod
    def validate_aws_account_id(cls, account_id: str) -> str:
        """Validate AWS account ID"""
        if not cls.PATTERNS['aws_account_id'].match(account_id or ""):
            raise CustomValidationError(f"Invalid AWS account ID: {account_id}")
        return account_id

    @classmethod
    def validate_aws_region(cls, region: str) -> str:
        """Validate AWS region name (shape only, new regions are accepted)"""
        if not cls.PATTERNS['aws_region'].match(region or ""):
            raise CustomValidationError(f"Invalid AWS region: {region}")
        return region

    @classmethod
    def validate_role_arn(cls, arn: str) -> str:
        """Validate an IAM role ARN"""
        if not cls.PATTERNS['aws_role_arn'].match(arn or ""):
            raise CustomValidationError(f"Invalid IAM role ARN: {arn}")
        return arn

    @classmethod
    def validate_date_range(cls, start_date: Union[str, date], end_date: Union[str, date]) -> tuple:
        """Validate date range"""
        if isinstance(start_date, str):
            start_date = datetime.fromisoformat(start_date).date()
        if isinstance(end_date, str):
            end_date = datetime.fromisoformat(end_date).date()

        if start_date > end_date:
            raise CustomValidationError("Start date must be before end date")

        return start_date, end_date

    @classmethod
    def validate_file_path(cls, file_path: Union[str, Path], must_exist: bool = False) -> Path:
        """Validate file path"""
        path = Path(file_path)

        if must_exist and not path.exists():
            raise CustomValidationError(f"File does not exist: {path}")

        return path


class RequestValidator(BaseModel):
    """Base model for request validation"""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)


class ReportRequest(RequestValidator):
    """Validate a report request coming from the command line"""
    account_id: Optional[str] = None  # None reports on every configured account
    cadence: Cadence = Cadence.WEEKLY
    as_of: Optional[date] = None
    regions: List[str] = Field(default_factory=list)
    formats: List[str] = Field(default_factory=lambda: ["json"])
    output_dir: Path = Path("./reports")
    snapshot: Optional[Path] = None

    @field_validator('account_id')
    @classmethod
    def validate_account(cls, account_id: Optional[str]) -> Optional[str]:
        if account_id is None:
            return None
        return Validator.validate_aws_account_id(account_id)

    @field_validator('regions')
    @classmethod
    def validate_regions(cls, regions: List[str]) -> List[str]:
        return [Validator.validate_aws_region(region) for region in regions]

    @field_validator('formats')
    @classmethod
    def validate_formats(cls, formats: List[str]) -> List[str]:
        for fmt in formats:
            if fmt not in ('json', 'csv'):
                raise ValueError(f"Unsupported format: {fmt}")
        return formats

    @model_validator(mode='after')
    def validate_snapshot(self) -> "ReportRequest":
        if self.snapshot is not None:
            Validator.validate_file_path(self.snapshot, must_exist=True)
        return self
