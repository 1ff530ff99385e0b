# ORM models: import all so Base.metadata knows every table.
from contractscope.db.models.contract_record import ContractRecordRow

__all__ = ["ContractRecordRow"]
