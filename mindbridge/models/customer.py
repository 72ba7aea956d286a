"""Processor customer mapping model."""
from typing import Dict, Any
from datetime import datetime
from dataclasses import dataclass, field


@dataclass
class CustomerMapping:
    """Links a local user to the processor-side customer record."""
    user_id: str
    merchant_customer_id: str
    processor_customer_id: str
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "merchant_customer_id": self.merchant_customer_id,
            "processor_customer_id": self.processor_customer_id,
            "created_at": self.created_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomerMapping":
        return cls(
            user_id=data["user_id"],
            merchant_customer_id=data["merchant_customer_id"],
            processor_customer_id=data["processor_customer_id"],
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.utcnow()
        )
