from fastapi import Security, HTTPException, status
from fastapi.security import APIKeyHeader

from reviewgate.config.settings import RG_API_KEY

API_KEY = RG_API_KEY
API_KEY_NAME = "X-ReviewGate-API-KEY"

api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=True)


async def get_api_key(api_key_header: str = Security(api_key_header)):
    if not API_KEY:
        # The server itself has no key configured; not the client's fault.
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API Key not configured on server.",
        )

    if api_key_header == API_KEY:
        return api_key_header
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API Key",
    )
