from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Query, Session

ModelType = TypeVar("ModelType")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[ModelType, SchemaType]):
    """리포지토리 공통 베이스

    리포지토리는 flush까지만 수행하고 commit/rollback은 서비스 계층이 결정합니다.
    (여러 리포지토리 호출을 하나의 트랜잭션으로 묶기 위함)
    """

    def __init__(
        self, model_class: Type[ModelType], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, instance: Any) -> Optional[SchemaType]:
        if instance is None:
            return None
        return self.schema_class.model_validate(instance, from_attributes=True)

    def get_model(self, id: Any) -> Optional[ModelType]:
        """ORM 인스턴스 조회 (수정이 필요한 경우)"""
        return self.db.get(self.model_class, id)

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        return self._to_schema(self.get_model(id))

    def add(self, instance: ModelType) -> ModelType:
        """flush + refresh 로 id와 server_default(created_at) 값을 채움"""
        self.db.add(instance)
        self.db.flush()
        self.db.refresh(instance)
        return instance

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return self._filtered_query(filters).count()

    def exists(self, filters: Dict[str, Any]) -> bool:
        return self._filtered_query(filters).first() is not None

    def _filtered_query(self, filters: Optional[Dict[str, Any]]) -> Query:
        """컬럼명 == 값 조건만 지원 (없는 컬럼명은 무시하지 않고 에러)"""
        query = self.db.query(self.model_class)
        for key, value in (filters or {}).items():
            query = query.filter(getattr(self.model_class, key) == value)
        return query
