from contractscope.db.repositories.contract_record_repo import ContractRecordRepo

__all__ = ["ContractRecordRepo"]
