"""riadvisor - reservation utilization and cost optimization reports for AWS accounts"""

__version__ = "0.1.0"
