from typing import Callable, Generator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.core.security import verify_token
from app.services.data_source_service import DataSourceRegistry, data_source_registry

# OAuth2 scheme for token extraction (tokens are issued by the auth service)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_session_factory() -> Callable[[], Session]:
    """会话工厂，供后台任务与 WebSocket 使用独立会话"""
    return SessionLocal


def get_db(
    session_factory: Callable[[], Session] = Depends(get_session_factory)
) -> Generator:
    """异常时回滚"""
    db = session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def user_id_from_token(token: Optional[str]) -> Optional[int]:
    """Bearer token -> user id (the ``sub`` claim), None if missing or invalid"""
    if not token:
        return None
    subject = verify_token(token)
    if subject is None:
        return None
    try:
        return int(subject)
    except ValueError:
        return None


def get_current_user_id(
    token: Optional[str] = Depends(oauth2_scheme)
) -> int:
    """
    Get current user id from JWT token.

    Raises:
        HTTPException: 401 if token is missing, invalid or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = user_id_from_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_data_source_registry() -> DataSourceRegistry:
    """数据源注册表 (测试中可通过 dependency_overrides 替换)"""
    return data_source_registry
