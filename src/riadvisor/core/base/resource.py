from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional
from enum import Enum

from ..exceptions import ValidationError
from ..period import ensure_utc
from ...analysis.normalization import normalization_factor


class ResourceKind(str, Enum):
    EC2 = "ec2"
    RDS = "rds"


class UsageType(str, Enum):
    """Usage-type tag of a Cost Explorer bucket"""
    USAGE = "Usage"
    DISCOUNTED = "DiscountedUsage"


class ReservationState(str, Enum):
    ACTIVE = "active"
    RETIRED = "retired"
    PAYMENT_PENDING = "payment-pending"
    PAYMENT_FAILED = "payment-failed"
    QUEUED = "queued"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key among camelCase/PascalCase/snake_case spellings"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _tag_value(tags: Any, key: str) -> str:
    """Value of a tag from a ``{key: value}`` map or a list of key/value pairs"""
    if isinstance(tags, dict):
        return str(tags.get(key) or "")
    for tag in tags or []:
        if isinstance(tag, dict) and _pick(tag, "key", "Key") == key:
            return str(_pick(tag, "value", "Value", "tag", default=""))
    return ""


@dataclass(frozen=True)
class ReservedInstanceRecord:
    """One reserved-instance purchase as last reported by the inventory"""

    reserved_instances_id: str
    instance_type: str
    instance_count: int
    fixed_price: float
    end: datetime
    start: Optional[datetime] = None
    usage_price: float = 0.0
    currency: str = "USD"
    state: str = ReservationState.ACTIVE.value
    offering_class: str = ""
    offering_type: str = ""
    scope: str = ""
    availability_zone: str = ""
    region: str = ""
    duration: int = 0
    product_description: str = ""

    def __post_init__(self):
        if self.end is None:
            raise ValidationError(f"Reservation {self.reserved_instances_id} has no end date")
        object.__setattr__(self, "end", ensure_utc(self.end))
        if self.start is not None:
            object.__setattr__(self, "start", ensure_utc(self.start))
        if self.instance_count < 0:
            raise ValidationError(f"Negative instance count on reservation {self.reserved_instances_id}")

    @property
    def family(self) -> str:
        return normalization_factor(self.instance_type)[0]

    @property
    def normalization_factor(self) -> float:
        return normalization_factor(self.instance_type)[1]

    @property
    def computational_power(self) -> float:
        return self.instance_count * self.normalization_factor

    @property
    def invested_cost(self) -> float:
        return self.instance_count * self.fixed_price

    @property
    def is_active(self) -> bool:
        return self.state == ReservationState.ACTIVE.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any], region: str = "") -> "ReservedInstanceRecord":
        """Build a record from an analytics-store document or a DescribeReservedInstances item"""
        return cls(
            reserved_instances_id=_pick(data, "reservedInstancesId", "ReservedInstancesId", "reserved_instances_id", default=""),
            instance_type=_pick(data, "instanceType", "InstanceType", "instance_type", default=""),
            instance_count=int(_pick(data, "instanceCount", "InstanceCount", "instance_count", default=0)),
            fixed_price=float(_pick(data, "fixedPrice", "FixedPrice", "fixed_price", default=0.0)),
            usage_price=float(_pick(data, "usagePrice", "UsagePrice", "usage_price", default=0.0)),
            currency=_pick(data, "currencyCode", "CurrencyCode", "currency", default="USD"),
            start=_pick(data, "startDate", "Start", "start"),
            end=_pick(data, "endDate", "End", "end"),
            state=_pick(data, "state", "State", default=ReservationState.ACTIVE.value),
            offering_class=_pick(data, "offeringClass", "OfferingClass", "offering_class", default=""),
            offering_type=_pick(data, "offeringType", "OfferingType", "offering_type", default=""),
            scope=_pick(data, "scope", "Scope", default=""),
            availability_zone=_pick(data, "availabilityZone", "AvailabilityZone", "availability_zone", default=""),
            region=_pick(data, "region", "Region", default=region),
            duration=int(_pick(data, "duration", "Duration", default=0)),
            product_description=_pick(data, "productDescription", "ProductDescription", "product_description", default=""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reserved_instances_id": self.reserved_instances_id,
            "instance_type": self.instance_type,
            "family": self.family,
            "normalization_factor": self.normalization_factor,
            "instance_count": self.instance_count,
            "fixed_price": self.fixed_price,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat(),
            "state": self.state,
            "region": self.region,
        }


@dataclass(frozen=True)
class UsageRecord:
    """Normalized usage of one family/size bucket over a report window"""

    usage_type: UsageType
    family: str
    normalization_factor: float
    normalized_usage: float
    cost: float
    discounted_cost: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "usage_type", UsageType(self.usage_type))
        for name in ("normalized_usage", "cost", "discounted_cost"):
            if getattr(self, name) < 0:
                raise ValidationError(f"Usage bucket {self.family}/{self.normalization_factor} has negative {name}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageRecord":
        return cls(
            usage_type=_pick(data, "usageType", "usage_type", "type"),
            family=_pick(data, "family", "Family", default=""),
            normalization_factor=float(_pick(data, "normalizationFactor", "normalization_factor", default=0.0)),
            normalized_usage=float(_pick(data, "normalizedUsage", "normalized_usage", default=0.0)),
            cost=float(_pick(data, "cost", "totalCost", default=0.0)),
            discounted_cost=float(_pick(data, "discountedCost", "discounted_cost", default=0.0)),
        )


@dataclass(frozen=True)
class InstanceUtilizationRecord:
    """Cost and CPU statistics of one EC2 instance or RDS database over a window"""

    resource_id: str
    kind: ResourceKind
    instance_type: str
    cpu_average: float
    cpu_peak: float
    name: str = ""
    costs: Dict[str, float] = field(default_factory=dict)
    region: str = ""
    network_in: Optional[float] = None
    network_out: Optional[float] = None
    volume_read: Optional[float] = None
    volume_write: Optional[float] = None
    free_storage_space: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "kind", ResourceKind(self.kind))

    @property
    def family(self) -> str:
        return normalization_factor(self.instance_type)[0]

    @property
    def normalization_factor(self) -> float:
        return normalization_factor(self.instance_type)[1]

    @property
    def total_cost(self) -> float:
        return sum(self.costs.values())

    @property
    def display_name(self) -> str:
        return self.name or self.resource_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any], kind: Optional[ResourceKind] = None) -> "InstanceUtilizationRecord":
        cpu = data.get("cpu", {}) or {}
        return cls(
            resource_id=_pick(data, "id", "resourceId", "resource_id", "instanceId", "dbInstanceIdentifier", default=""),
            kind=kind or _pick(data, "kind", default=ResourceKind.EC2),
            instance_type=_pick(data, "type", "instanceType", "dbInstanceClass", "instance_type", default=""),
            name=_pick(data, "name", default="") or _tag_value(_pick(data, "tags", "Tags"), "Name"),
            costs={k: float(v) for k, v in (_pick(data, "costs", default={}) or {}).items()},
            cpu_average=float(_pick(cpu, "average", default=_pick(data, "cpuAverage", "cpu_average", default=0.0))),
            cpu_peak=float(_pick(cpu, "peak", default=_pick(data, "cpuPeak", "cpu_peak", default=0.0))),
            region=_pick(data, "region", default=""),
            network_in=_optional_float(_pick(data, "networkIn", "network_in")),
            network_out=_optional_float(_pick(data, "networkOut", "network_out")),
            volume_read=_optional_float(_pick(data, "volumeRead", "volume_read", "readIops")),
            volume_write=_optional_float(_pick(data, "volumeWrite", "volume_write", "writeIops")),
            free_storage_space=_optional_float(_pick(data, "freeStorageSpace", "free_storage_space")),
        )


@dataclass(frozen=True)
class S3BucketUsage:
    """Storage volume and costs of one S3 bucket over a window"""

    bucket: str
    storage_gb_month: float = 0.0
    storage_cost: float = 0.0
    bandwidth_cost: float = 0.0
    requests_cost: float = 0.0

    @property
    def total_cost(self) -> float:
        return self.storage_cost + self.bandwidth_cost + self.requests_cost

    @property
    def cost_per_gb(self) -> float:
        if self.storage_gb_month <= 0:
            return 0.0
        return self.storage_cost / self.storage_gb_month

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "S3BucketUsage":
        return cls(
            bucket=_pick(data, "bucket", "name", default=""),
            storage_gb_month=float(_pick(data, "gbMonth", "storage_gb_month", default=0.0)),
            storage_cost=float(_pick(data, "storageCost", "storage_cost", default=0.0)),
            bandwidth_cost=float(_pick(data, "bandwidthCost", "bandwidth_cost", default=0.0)),
            requests_cost=float(_pick(data, "requestsCost", "requests_cost", default=0.0)),
        )


@dataclass(frozen=True)
class TagCostRecord:
    """EC2 and RDS cost of the resources sharing one Application/Owner tag pair"""

    application: str
    owner: str
    ec2_cost: float = 0.0
    rds_cost: float = 0.0

    def __post_init__(self):
        if self.ec2_cost < 0 or self.rds_cost < 0:
            raise ValidationError(f"Tag group {self.application}/{self.owner} has a negative cost")

    @property
    def total_cost(self) -> float:
        return self.ec2_cost + self.rds_cost

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TagCostRecord":
        return cls(
            application=str(_pick(data, "application", "Application", default="")),
            owner=str(_pick(data, "owner", "Owner", default="")),
            ec2_cost=float(_pick(data, "ec2Cost", "ec2_cost", default=0.0)),
            rds_cost=float(_pick(data, "rdsCost", "RdsCost", "rds_cost", default=0.0)),
        )
