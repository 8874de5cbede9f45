"""Custom SQLAlchemy types for cross-database compatibility"""
from sqlalchemy import TypeDecorator, String, Numeric
from decimal import Decimal
import uuid


def generate_uuid():
    """Generate a UUID string"""
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """Platform-independent GUID type that stores UUIDs as VARCHAR(36)"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value


class Money(TypeDecorator):
    """Rupee amounts stored as NUMERIC(14, 2) and always read back as Decimal"""
    impl = Numeric(14, 2)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return Decimal(str(value)).quantize(Decimal("0.01"))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return Decimal(str(value)).quantize(Decimal("0.01"))
