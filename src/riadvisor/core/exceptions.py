"""Custom exceptions for riadvisor"""


class RiAdvisorError(Exception):
    """Base exception for all riadvisor errors"""
    pass


class ConfigurationError(RiAdvisorError):
    """Raised when configuration is invalid"""
    pass


class ValidationError(RiAdvisorError):
    """Raised when input validation fails"""
    pass


class DataCollectionError(RiAdvisorError):
    """Raised when an upstream data source fails"""

    def __init__(self, message: str, account_id: str = None):
        self.account_id = account_id
        if account_id:
            message = f"[{account_id}] {message}"
        super().__init__(message)


class InventoryFetchError(DataCollectionError):
    """Raised when reserved instance inventory cannot be fetched"""
    pass


class UsageQueryError(DataCollectionError):
    """Raised when usage buckets cannot be queried"""
    pass


class UtilizationQueryError(DataCollectionError):
    """Raised when instance utilization cannot be queried"""
    pass


class PricingFetchError(DataCollectionError):
    """Raised when reserved unit prices cannot be fetched"""
    pass


class StorageQueryError(DataCollectionError):
    """Raised when S3 bucket usage cannot be queried"""
    pass


class TagCostQueryError(DataCollectionError):
    """Raised when tag-grouped costs cannot be queried"""
    pass


class FetchCancelledError(RiAdvisorError):
    """Raised when a fetch is cancelled or its deadline has passed"""
    pass


class ReportGenerationError(RiAdvisorError):
    """Raised when report generation fails"""
    pass


class ReportDataError(ReportGenerationError):
    """Raised when a report cannot be built because a data section failed"""

    def __init__(self, section: str, cause: Exception):
        self.section = section
        self.cause = cause
        super().__init__(f"Report section '{section}' unavailable: {cause}")


class ProviderError(RiAdvisorError):
    """Base exception for provider-specific errors"""
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class AWSError(ProviderError):
    """AWS-specific errors"""
    def __init__(self, message: str):
        super().__init__("AWS", message)
