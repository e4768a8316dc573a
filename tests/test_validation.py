"""Tests for validation module"""

import pytest
from datetime import date
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from riadvisor.core.base.account import AwsAccount
from riadvisor.core.config import AWSConfig
from riadvisor.core.validation import Validator, ReportRequest
from riadvisor.core.period import Cadence
from riadvisor.core.exceptions import ValidationError


class TestValidator:
    """Test Validator class"""

    def test_validate_aws_account_id(self):
        """Test AWS account ID validation"""
        assert Validator.validate_aws_account_id("123456789012") == "123456789012"

        with pytest.raises(ValidationError):
            Validator.validate_aws_account_id("12345678901")  # Too short

        with pytest.raises(ValidationError):
            Validator.validate_aws_account_id("1234567890123")  # Too long

        with pytest.raises(ValidationError):
            Validator.validate_aws_account_id("12345678901a")  # Contains letter

    def test_validate_aws_region(self):
        """Test AWS region validation"""
        assert Validator.validate_aws_region("us-east-1") == "us-east-1"
        assert Validator.validate_aws_region("eu-west-1") == "eu-west-1"
        assert Validator.validate_aws_region("us-gov-west-1") == "us-gov-west-1"

        with pytest.raises(ValidationError):
            Validator.validate_aws_region("invalid-region")

        with pytest.raises(ValidationError):
            Validator.validate_aws_region("us-east")

    def test_validate_role_arn(self):
        """Test IAM role ARN validation"""
        arn = "arn:aws:iam::123456789012:role/riadvisor-reader"
        assert Validator.validate_role_arn(arn) == arn

        with pytest.raises(ValidationError):
            Validator.validate_role_arn("arn:aws:iam::123456789012:user/bob")

    def test_validate_date_range(self):
        """Test date range validation"""
        start = date(2024, 1, 1)
        end = date(2024, 12, 31)

        result = Validator.validate_date_range(start, end)
        assert result == (start, end)

        # Test with string dates
        result = Validator.validate_date_range("2024-01-01", "2024-12-31")
        assert result == (start, end)

        with pytest.raises(ValidationError):
            Validator.validate_date_range(end, start)  # End before start

    def test_validate_file_path(self, tmp_path):
        """Test file path validation"""
        assert Validator.validate_file_path(str(tmp_path)) == tmp_path

        with pytest.raises(ValidationError):
            Validator.validate_file_path(tmp_path / "missing.yaml", must_exist=True)


class TestAwsAccount:
    """Test account validation"""

    def test_valid(self):
        account = AwsAccount("123456789012", role_arn="arn:aws:iam::123456789012:role/reader",
                             regions=["eu-west-1"])
        assert account.display_name == "123456789012"
        assert account.session_name == "riadvisor-123456789012"

    def test_invalid(self):
        with pytest.raises(ValidationError):
            AwsAccount("1234")
        with pytest.raises(ValidationError):
            AwsAccount("123456789012", regions=["moon-base"])

    def test_default_role_from_settings(self):
        aws = AWSConfig(assume_role_arn="arn:aws:iam::{account_id}:role/riadvisor-reader",
                        external_id="shared-secret", regions=["us-east-1"])

        account = AwsAccount("123456789012").with_defaults(aws)

        assert account.role_arn == "arn:aws:iam::123456789012:role/riadvisor-reader"
        assert account.external_id == "shared-secret"
        assert account.regions == ["us-east-1"]

    def test_own_role_is_kept(self):
        aws = AWSConfig(assume_role_arn="arn:aws:iam::{account_id}:role/riadvisor-reader",
                        external_id="shared-secret", regions=["us-east-1"])
        own = AwsAccount("123456789012", role_arn="arn:aws:iam::123456789012:role/reader",
                         regions=["eu-west-1"])

        account = own.with_defaults(aws)

        assert account.role_arn == "arn:aws:iam::123456789012:role/reader"
        assert account.external_id is None
        assert account.regions == ["eu-west-1"]

    def test_no_default_role(self):
        account = AwsAccount("123456789012").with_defaults(AWSConfig())
        assert account.role_arn is None
        assert account.regions == []


class TestRequestValidators:
    """Test request validator models"""

    def test_report_request(self, snapshot_file):
        """Test ReportRequest validation"""
        request = ReportRequest(
            account_id=" 123456789012 ",
            cadence="monthly",
            as_of=date(2024, 3, 13),
            regions=["us-east-1"],
            formats=["json", "csv"],
            snapshot=snapshot_file,
        )

        assert request.account_id == "123456789012"
        assert request.cadence == Cadence.MONTHLY
        assert request.output_dir == Path("./reports")

    def test_invalid_account(self):
        with pytest.raises(ValidationError):
            ReportRequest(account_id="not-an-account")

    def test_invalid_format(self):
        with pytest.raises(PydanticValidationError):
            ReportRequest(account_id="123456789012", formats=["pdf"])

    def test_invalid_cadence(self):
        with pytest.raises(PydanticValidationError):
            ReportRequest(account_id="123456789012", cadence="daily")

    def test_missing_snapshot(self, tmp_path):
        with pytest.raises(ValidationError):
            ReportRequest(account_id="123456789012", snapshot=tmp_path / "missing.yaml")

    def test_every_configured_account(self):
        request = ReportRequest(formats=["json"])
        assert request.account_id is None
        assert request.cadence == Cadence.WEEKLY
